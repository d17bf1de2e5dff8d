"""Core logic for candle aggregation, indicators, and trading decisions.

This package contains pure business logic with no network or storage
dependencies. Collaborators (tick feed, historical fetch, order submission)
are injected by the application layer (tickapp/).
"""
