import re
import threading
from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorClient
from pymongo.errors import ConfigurationError, PyMongoError
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from space_together.core.errors import ConfigMissing, UpstreamUnavailable
from space_together.core.logging import logger


TENANT_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")
TENANT_NAME_PATTERN = re.compile(r"^school_[A-Za-z0-9_-]+$")
TENANT_PREFIX = "school_"
# MongoDB database names are limited to 63 bytes
MAX_DB_NAME_LENGTH = 63


def school_db_name(school_id: str) -> str:
    return f"{TENANT_PREFIX}{school_id}"


def is_valid_tenant_id(value: Optional[str]) -> bool:
    return bool(value) and TENANT_ID_PATTERN.match(value) is not None \
        and len(school_db_name(value)) <= MAX_DB_NAME_LENGTH


def is_valid_tenant_name(value: Optional[str]) -> bool:
    return bool(value) and TENANT_NAME_PATTERN.match(value) is not None \
        and len(value) <= MAX_DB_NAME_LENGTH


class MongoManager:
    """Owns the single Mongo client and memoizes one database handle per tenant.

    ``main()`` is the control-plane database. ``for_tenant(name)`` returns the
    handle for ``school_<id>`` databases; the first caller for a name builds
    the handle under a lock and everyone after reuses it. Entries are never
    evicted.
    """

    def __init__(self, client: Any, main_db_name: str = "space_together"):
        self.client = client
        self.main_db_name = main_db_name
        self._main = client.get_database(main_db_name)
        self._cache: Dict[str, Any] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_uri(
        cls,
        uri: Optional[str],
        main_db_name: str = "space_together",
        server_selection_timeout_ms: int = 5000,
    ) -> "MongoManager":
        if not uri:
            raise ConfigMissing("MONGO_URI is not set")
        try:
            client = AsyncIOMotorClient(
                uri,
                serverSelectionTimeoutMS=server_selection_timeout_ms,
                tz_aware=True,
            )
        except (ConfigurationError, ValueError, TypeError) as e:
            raise UpstreamUnavailable(f"Could not create database client: {str(e)}")
        logger.info(f"Database client created (main database: {main_db_name})")
        return cls(client, main_db_name)

    def main(self):
        return self._main

    def for_tenant(self, name: str):
        if not is_valid_tenant_name(name):
            raise ValueError(f"Invalid tenant database name: {name!r}")

        handle = self._cache.get(name)
        if handle is not None:
            return handle

        with self._lock:
            handle = self._cache.get(name)
            if handle is None:
                handle = self.client.get_database(name)
                self._cache[name] = handle
                logger.debug(f"Tenant database handle created: {name}")
        return handle

    def tenant_names(self) -> List[str]:
        with self._lock:
            return sorted(self._cache)

    async def ping(self, attempts: int = 3) -> None:
        """Check the server is reachable, retrying with backoff before giving up."""
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(max(attempts, 1)),
                wait=wait_exponential(multiplier=0.5, min=0.5, max=5),
                retry=retry_if_exception_type(PyMongoError),
                reraise=False,
            ):
                with attempt:
                    await self.client.admin.command("ping")
        except RetryError as e:
            cause = e.last_attempt.exception()
            raise UpstreamUnavailable(f"Database is unreachable: {str(cause)}")
        logger.info("Database connection established successfully")

    def close(self) -> None:
        self.client.close()
        logger.info("Database client closed")
