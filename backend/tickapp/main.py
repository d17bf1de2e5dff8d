"""Main application entry point."""

import logging
from contextlib import asynccontextmanager

# Configure logging FIRST, before any other imports
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s",
)

# Reduce noise from third-party libraries (must be set before importing them)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("asyncio").setLevel(logging.WARNING)

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

# Prefer uvloop for the server loop where it is installed (Unix only)
try:
    import uvloop  # noqa: F401
    _EVENT_LOOP = "uvloop"
except ImportError:
    _EVENT_LOOP = "asyncio"

from tickapp.api import router, manager, websocket_endpoint
from tickapp.clients import HistoryRestClient, PaperOrderClient, QueueTickFeed
from tickapp.config import get_settings
from tickapp.services import Engine
from tickcore.strategy import list_evaluators

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    settings = get_settings()
    if settings.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    logger.info("Starting tick signal engine...")
    logger.info(f"Event loop: {_EVENT_LOOP}")
    logger.info(f"Evaluators available: {', '.join(list_evaluators())}")

    history_client = None
    if settings.history_base_url:
        history_client = HistoryRestClient(
            base_url=settings.history_base_url,
            api_key=settings.history_api_key,
            timezone_name=settings.session_timezone,
        )

    tick_feed = QueueTickFeed()
    engine = Engine(
        submitter=PaperOrderClient(),
        fetcher=history_client,
        settings=settings,
    )
    engine.on_event(manager.broadcast)

    try:
        await engine.start(tick_feed)
    except Exception as e:
        logger.error(f"Startup failed: {e}")
        await engine.stop()
        if history_client:
            await history_client.close()
        raise

    # Expose engine and feed to API routes via app.state
    app.state.engine = engine
    app.state.tick_feed = tick_feed

    yield

    logger.info("Shutting down...")
    app.state.engine = None
    app.state.tick_feed = None

    await engine.stop()
    if history_client:
        await history_client.close()

    logger.info("Shutdown complete")


# Create FastAPI app with orjson for faster JSON serialization
app = FastAPI(
    title="Tick Signal Engine",
    description="Live tick aggregation, indicators and gated trade decisions",
    version="0.1.0",
    lifespan=lifespan,
    default_response_class=ORJSONResponse,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include REST routes
app.include_router(router, prefix="/api")

# WebSocket endpoint
app.websocket("/ws")(websocket_endpoint)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "Tick Signal Engine",
        "version": "0.1.0",
        "docs": "/docs",
        "event_loop": _EVENT_LOOP,
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


def main():
    """Run the application."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "tickapp.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        loop=_EVENT_LOOP,
    )


if __name__ == "__main__":
    main()
