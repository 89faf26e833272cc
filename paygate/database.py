"""
MongoDB connection management and Beanie initialization.

init_beanie also creates the declared indexes, including the unique partial
index on transactions.tx_hash that duplicate detection relies on.
"""

from motor.motor_asyncio import AsyncIOMotorClient
from beanie import init_beanie
from paygate.models import PaymentDocument, StoreDocument, TransactionDocument
from paygate.core.config import DatabaseConfig
from paygate.core.exceptions import DatabaseError, ConfigurationError
from paygate.core.monitoring import monitor_errors
import logging
import asyncio
from datetime import datetime, timezone
from tenacity import retry, retry_if_not_exception_type, stop_after_attempt, wait_exponential
from typing import Dict, Any, Optional

logger = logging.getLogger(__name__)

DOCUMENT_MODELS = [StoreDocument, PaymentDocument, TransactionDocument]

PING_TIMEOUT_SECONDS = 5.0

_db_client: Optional[AsyncIOMotorClient] = None


def _create_client(config: DatabaseConfig) -> AsyncIOMotorClient:
    # datetimes come back timezone-aware (UTC)
    return AsyncIOMotorClient(
        config.url,
        maxPoolSize=config.max_pool_size,
        minPoolSize=config.min_pool_size,
        serverSelectionTimeoutMS=config.server_selection_timeout_ms,
        connectTimeoutMS=config.connect_timeout_ms,
        socketTimeoutMS=config.socket_timeout_ms,
        retryWrites=config.retry_writes,
        tz_aware=True,
    )


@monitor_errors("database_init")
@retry(
    retry=retry_if_not_exception_type(ConfigurationError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    reraise=True,
)
async def init_db(config: DatabaseConfig) -> AsyncIOMotorClient:
    """
    Connect to MongoDB, register the paygate documents and build their indexes.

    Raises:
        DatabaseError: If the server cannot be reached or Beanie fails
        ConfigurationError: If the URL is not a MongoDB URL (not retried)
    """
    global _db_client

    if not config.url.startswith(("mongodb://", "mongodb+srv://")):
        raise ConfigurationError("Invalid MONGO_URL format", config_key="MONGO_URL")

    logger.info(f"Connecting to MongoDB (pool: min={config.min_pool_size}, max={config.max_pool_size})")
    client = _create_client(config)

    try:
        await asyncio.wait_for(client.admin.command("ping"), timeout=PING_TIMEOUT_SECONDS)
        await init_beanie(database=client.get_default_database(), document_models=DOCUMENT_MODELS)
    except asyncio.TimeoutError:
        client.close()
        raise DatabaseError("Database connection timeout", operation="ping_test")
    except Exception as e:
        client.close()
        logger.error("Failed to initialize database", exc_info=True)
        raise DatabaseError("Database initialization failed", operation="init_db") from e

    _db_client = client
    logger.info("MongoDB connected, Beanie initialized")
    return client


async def get_database_client() -> AsyncIOMotorClient:
    """
    Raises:
        DatabaseError: If init_db() has not succeeded
    """
    if _db_client is None:
        raise DatabaseError("Database not initialized", operation="get_client")
    return _db_client


async def close_database():
    global _db_client

    if _db_client is not None:
        _db_client.close()
        _db_client = None
        logger.info("Database connection closed")


async def health_check() -> Dict[str, Any]:
    """Ping MongoDB and touch the payments collection."""
    healthy = True
    try:
        client = await get_database_client()
        await client.admin.command("ping")
        await PaymentDocument.find_one({})
    except Exception:
        logger.warning("Database health check failed", exc_info=True)
        healthy = False

    return {
        "status": "healthy" if healthy else "unhealthy",
        "database": "connected" if healthy else "disconnected",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
