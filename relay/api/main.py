"""
FastAPI Application

Main entry point for the relay API.
Handles application lifecycle and router mounting.
"""
import asyncio
from contextlib import asynccontextmanager
from fastapi import FastAPI
from loguru import logger

from relay import __version__
from relay.config import Settings, settings
from relay.delivery import BackoffPolicy, Forwarder, HttpTransport, RetrySweeper
from relay.repositories import InMemoryMessageStore, MessageStore, MongoMessageStore, db_manager
from relay.services.ingestion import IngestionService
from relay.utils.observability import configure_logging
from relay.api.routes import health_router, messages_router, metrics_router


async def create_store(config: Settings) -> MessageStore:
    """
    Build the configured message store.

    MongoDB: connects the shared client and ensures indexes exist.
    Memory: no durability, for local runs and tests.
    """
    if config.store_backend == "memory":
        logger.warning("⚠️ Using in-memory message store - messages are lost on restart")
        return InMemoryMessageStore()

    await db_manager.connect(config)
    await db_manager.create_indexes()
    logger.info("✓ Connected to MongoDB")
    return MongoMessageStore(db_manager.database)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifecycle: startup and shutdown events.

    Startup:
    - Configure logging
    - Connect the message store
    - Build transport, forwarder, ingestion service and retry sweeper
    - Start the retry sweeper in the background

    Shutdown:
    - Stop the retry sweeper (a running sweep completes first)
    - Wait for in-flight deliveries started by ingestion
    - Close the HTTP client and the MongoDB connection
    """
    configure_logging()
    logger.info("🚀 Starting relay server...")

    store = await create_store(settings)

    transport = HttpTransport.from_settings(settings)
    forwarder = Forwarder(
        store=store,
        transport=transport,
        policy=BackoffPolicy.from_settings(settings),
        max_concurrent=settings.retry_worker_max_concurrent,
    )
    logger.info("✓ Forwarder configured")

    ingestion = IngestionService(store=store, forwarder=forwarder)
    sweeper = RetrySweeper.from_settings(settings, store=store, forwarder=forwarder)

    app.state.store = store
    app.state.transport = transport
    app.state.forwarder = forwarder
    app.state.ingestion = ingestion
    app.state.sweeper = sweeper

    sweeper_task = None
    if settings.retry_worker_enabled:
        sweeper_task = asyncio.create_task(sweeper.run())
        logger.info("✓ Retry sweeper started")
    else:
        logger.warning("Retry sweeper disabled by configuration")
    app.state.sweeper_task = sweeper_task

    logger.info(f"API server ready, forwarding to {settings.backend_url}")

    yield

    logger.info("Shutting down relay server...")

    await sweeper.stop()
    if sweeper_task is not None:
        try:
            await asyncio.wait_for(sweeper_task, timeout=settings.backend_timeout_secs * 2)
        except asyncio.TimeoutError:
            logger.warning("Retry sweeper did not stop in time, cancelling")
            sweeper_task.cancel()
            try:
                await sweeper_task
            except asyncio.CancelledError:
                logger.info("Stopped retry sweeper")

    await ingestion.drain()
    await transport.aclose()

    if isinstance(store, MongoMessageStore):
        await db_manager.disconnect()
    logger.info("Shutdown complete")


# Create FastAPI application
app = FastAPI(
    title="Store-and-Forward Relay",
    description="Durable JSON relay with bounded retries and a background retry sweep",
    version=__version__,
    lifespan=lifespan
)

# Mount routers
app.include_router(health_router)
app.include_router(messages_router)
app.include_router(metrics_router)
