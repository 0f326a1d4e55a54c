"""
Database Module

This module manages the MongoDB connection for the application. The
client is created inside the FastAPI lifespan and handed to the rest of
the code through ``app.state`` and the ``get_store`` dependency, so
nothing connects at import time.

Features:
- Connection management
- Database initialization
- Index creation
- Lifecycle management
- Timer shutdown

Dependencies:
- Motor for async MongoDB
- FastAPI for lifecycle
"""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from motor.motor_asyncio import AsyncIOMotorClient

from timekeep.shared import config
from timekeep.shared.store import EntryStore

logger = logging.getLogger(__name__)


def create_client(url: str = None) -> AsyncIOMotorClient:
    """Create a Motor client using the configured connection settings."""
    return AsyncIOMotorClient(url or config.MONGODB_URL, **config.MONGO_SETTINGS)


async def init_db(client: AsyncIOMotorClient, retry_count: int = 3, retry_delay: float = 5) -> bool:
    """
    Initialize database connection.

    Args:
        client: Motor client to ping
        retry_count: Attempts before giving up
        retry_delay: Seconds between attempts

    Returns:
        bool: Connection status
    """
    for attempt in range(retry_count):
        try:
            logger.info(f"Database initialization attempt {attempt + 1}/{retry_count}...")
            await client.admin.command("ping")
            logger.info("MongoDB ping successful")
            return True
        except Exception as e:
            logger.warning(f"Database connection attempt {attempt + 1} failed: {e}")
            if attempt < retry_count - 1:
                logger.info(f"Retrying in {retry_delay} seconds...")
                await asyncio.sleep(retry_delay)
    logger.error("All connection attempts failed")
    return False


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage database and timer lifecycle.

    Notes:
        - Connects and pings MongoDB
        - Builds the entry store and indexes
        - Detaches every timer engine on shutdown
        - Closes the client
    """
    from timekeep.features.timer.registry import TimerRegistry

    client = create_client()
    if not await init_db(client):
        client.close()
        raise RuntimeError("Failed to initialize database")
    store = EntryStore(client[config.DB_NAME])
    await store.ensure_indexes()
    app.state.store = store
    app.state.timers = TimerRegistry(store)
    logger.info("Database initialization complete")

    yield

    logger.info("Detaching running timers...")
    await app.state.timers.shutdown()
    client.close()
    logger.info("Database connections closed")


def get_store(request: Request) -> EntryStore:
    """FastAPI dependency returning the application's entry store."""
    return request.app.state.store
