"""
MongoDB connection management via Motor (async driver).

This module provides:
- Process-wide Motor clients, cached per connection string
- Database and collection lookup with name validation
- Health check and sanitized connection info for logging
"""

import logging

from motor.motor_asyncio import (
    AsyncIOMotorClient,
    AsyncIOMotorCollection,
    AsyncIOMotorDatabase,
)
from pymongo.errors import PyMongoError

from docrepo.config import MongoConfig, get_settings
from docrepo.exceptions import InvalidArgumentError

logger = logging.getLogger(__name__)

# Clients keyed by connection string
_clients: dict[str, AsyncIOMotorClient] = {}


def get_client(
    connection_string: str | None = None,
    config: MongoConfig | None = None,
) -> AsyncIOMotorClient:
    """
    Get (or lazily create) the Motor client for a connection string.

    Client options come from `config`, falling back to the `mongo` section of
    the application settings.
    """
    config = config or get_settings().mongo
    url = connection_string or config.url
    if not url:
        raise InvalidArgumentError("Connection string is required", argument="connection_string")

    client = _clients.get(url)
    if client is None:
        client = AsyncIOMotorClient(
            url,
            tz_aware=config.tz_aware,
            appname=config.app_name,
            serverSelectionTimeoutMS=config.server_selection_timeout_ms,
        )
        _clients[url] = client
        logger.info(f"Created MongoDB client for {sanitize_url(url)}")
    return client


def get_database(
    database_name: str | None,
    connection_string: str | None = None,
) -> AsyncIOMotorDatabase:
    """Get a database handle. The name is required."""
    if not database_name:
        raise InvalidArgumentError("Invalid database name", argument="database_name")
    return get_client(connection_string)[database_name]


def get_collection(
    database_name: str | None,
    collection_name: str | None,
    connection_string: str | None = None,
) -> AsyncIOMotorCollection:
    """Get a collection handle. Database and collection names are required."""
    if not database_name:
        raise InvalidArgumentError("Invalid database name", argument="database_name")
    if not collection_name:
        raise InvalidArgumentError("Invalid collection name", argument="collection_name")
    return get_database(database_name, connection_string)[collection_name]


def close_clients() -> None:
    """Close every cached client."""
    for url, client in list(_clients.items()):
        client.close()
        logger.info(f"Closed MongoDB client for {sanitize_url(url)}")
    _clients.clear()


async def check_connection(connection_string: str | None = None) -> bool:
    """
    Check if MongoDB answers a ping.
    """
    try:
        client = get_client(connection_string)
        await client.admin.command("ping")
        return True
    except PyMongoError as e:
        logger.warning(f"MongoDB ping failed: {e}")
        return False


def get_connection_info(connection_string: str | None = None) -> dict:
    """
    Get connection information and status, with credentials masked.
    """
    settings = get_settings()
    url = connection_string or settings.mongo.url

    return {
        "status": "connected" if url in _clients else "disconnected",
        "url": sanitize_url(url),
        "database": settings.mongo.database,
    }


def sanitize_url(url: str) -> str:
    """
    Hide password in MongoDB URL for safe logging.
    """
    if "@" not in url:
        return url

    # Handle mongodb+srv:// or mongodb://
    if "://" in url:
        protocol, rest = url.split("://", 1)
        if "@" in rest:
            credentials, host = rest.rsplit("@", 1)
            if ":" in credentials:
                username = credentials.split(":", 1)[0]
                return f"{protocol}://{username}:***@{host}"
    return url
