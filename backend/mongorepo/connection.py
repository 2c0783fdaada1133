"""
MongoDB connection management.

This module provides:
- MongoDB client connection via Motor (async driver)
- Database and collection handles for repositories
- Health check utilities
"""

from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import urlsplit, urlunsplit

from motor.motor_asyncio import (
    AsyncIOMotorClient,
    AsyncIOMotorCollection,
    AsyncIOMotorDatabase,
)
from pymongo.errors import PyMongoError

from .config import Settings, get_settings

logger = logging.getLogger(__name__)

# Global MongoDB client instance
_client: Optional[AsyncIOMotorClient] = None
_database_name: Optional[str] = None


def connect(uri: str, **kwargs) -> AsyncIOMotorClient:
    """
    Create a Motor client for ``uri``.

    Dates are returned timezone-aware so they compare equal to the UTC
    timestamps the repositories write.
    """
    kwargs.setdefault("tz_aware", True)
    return AsyncIOMotorClient(uri, **kwargs)


def init_db(settings: Settings | None = None) -> AsyncIOMotorClient:
    """
    Initialize the global MongoDB client from settings.
    Calling it again returns the existing client.
    """
    global _client, _database_name

    if _client is not None:
        return _client

    settings = settings or get_settings()
    _client = connect(settings.mongodb_url)
    _database_name = settings.mongodb_database
    logger.info(
        f"Connected MongoDB client to {_sanitize_mongodb_url(settings.mongodb_url)} "
        f"(database={_database_name})"
    )
    return _client


def close_db() -> None:
    """
    Close MongoDB connection.
    """
    global _client, _database_name
    if _client is not None:
        _client.close()
        _client = None
        _database_name = None
        logger.info("Closed MongoDB client")


def get_client() -> AsyncIOMotorClient:
    """
    Get the MongoDB client instance.
    """
    if _client is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")
    return _client


def get_database(name: str | None = None) -> AsyncIOMotorDatabase:
    """
    Get a database handle, the configured one by default.
    """
    return get_client()[name or _database_name]


def get_collection(name: str, database: str | None = None) -> AsyncIOMotorCollection:
    return get_database(database)[name]


async def check_db_connection() -> bool:
    """
    Check if MongoDB connection is healthy.
    """
    if _client is None:
        return False

    try:
        await _client.admin.command("ping")
        return True
    except PyMongoError as e:
        logger.warning(f"MongoDB ping failed: {e}")
        return False


def get_db_info(settings: Settings | None = None) -> dict:
    """
    Get database connection information and status.
    """
    settings = settings or get_settings()

    return {
        "status": "connected" if _client is not None else "disconnected",
        "url": _sanitize_mongodb_url(settings.mongodb_url),
        "database": _database_name or settings.mongodb_database,
        "environment": settings.environment,
    }


def _sanitize_mongodb_url(url: str) -> str:
    """Mask the password of a mongodb:// or mongodb+srv:// URL for logging."""
    parts = urlsplit(url)
    if "@" not in parts.netloc:
        return url

    credentials, hosts = parts.netloc.rsplit("@", 1)
    if ":" not in credentials:
        return url
    username = credentials.split(":", 1)[0]
    return urlunsplit(parts._replace(netloc=f"{username}:***@{hosts}"))
