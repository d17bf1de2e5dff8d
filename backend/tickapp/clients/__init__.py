"""External collaborators: historical data, order placement, tick feed."""

from tickcore.collaborators import CandleFetcher, OrderSubmitter
from tickapp.clients.history_rest import HistoryRestClient, RateLimiter
from tickapp.clients.paper_orders import PaperOrderClient
from tickapp.clients.tick_queue import QueueTickFeed

__all__ = [
    "CandleFetcher",
    "OrderSubmitter",
    "HistoryRestClient",
    "RateLimiter",
    "PaperOrderClient",
    "QueueTickFeed",
]
