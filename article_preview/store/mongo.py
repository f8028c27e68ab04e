"""
MongoDB-backed article store.

The connection is owned by a StoreHandle that is created once per
application and lives for the whole process. The handle builds its client
on first use; client construction performs no I/O, so two concurrent
requests can never interleave inside initialization and at most one client
is ever created per handle. The client is never closed explicitly.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from pymongo import AsyncMongoClient
from pymongo.errors import OperationFailure, PyMongoError

from ..config import StoreConfig, get_store_uri
from ..core.errors import InvalidPatternError, StoreNotConfiguredError, UpstreamUnavailableError
from ..core.types import ARTICLE_PROJECTION, ArticleRecord
from ..utils.logging import get_logger, log_event
from .base import ArticleStore


# Server error codes for a rejected regular expression.
_INVALID_REGEX_CODES = {2, 51091}

logger = get_logger("store")


class MongoArticleStore(ArticleStore):
    """Article queries against a single MongoDB collection."""

    def __init__(self, collection: Any):
        self._collection = collection

    async def find_one(self, query: dict[str, Any]) -> ArticleRecord | None:
        try:
            doc = await self._collection.find_one(query, projection=ARTICLE_PROJECTION)
        except PyMongoError as exc:
            raise _translate(exc, query) from exc
        if doc is None:
            return None
        return ArticleRecord.from_document(doc)

    async def find(self, query: dict[str, Any], limit: int) -> list[ArticleRecord]:
        try:
            cursor = self._collection.find(query, projection=ARTICLE_PROJECTION).limit(limit)
            docs = await cursor.to_list(length=limit)
        except PyMongoError as exc:
            raise _translate(exc, query) from exc
        return [ArticleRecord.from_document(doc) for doc in docs]

    async def count(self) -> int:
        try:
            return await self._collection.count_documents({})
        except PyMongoError as exc:
            raise _translate(exc, {}) from exc

    async def latest(self, skip: int = 0, limit: int | None = None) -> list[ArticleRecord]:
        try:
            cursor = (
                self._collection.find({}, projection=ARTICLE_PROJECTION)
                .sort("scrapedAt", -1)
                .skip(max(0, skip))
            )
            if limit is not None:
                cursor = cursor.limit(limit)
            docs = await cursor.to_list(length=limit)
        except PyMongoError as exc:
            raise _translate(exc, {}) from exc
        return [ArticleRecord.from_document(doc) for doc in docs]


class StoreHandle:
    """Lazily initialized, process-lifetime store owner.

    Args:
        cfg: Store connection settings
        client_factory: Callable building a client from a URI (AsyncMongoClient by default)
        store: Prebuilt store; when given, no client is ever created
    """

    def __init__(
        self,
        cfg: StoreConfig,
        client_factory: Callable[..., Any] = AsyncMongoClient,
        store: ArticleStore | None = None,
    ):
        self._cfg = cfg
        self._client_factory = client_factory
        self._store = store
        self._client: Any = None

    @property
    def initialized(self) -> bool:
        return self._store is not None

    def get(self) -> ArticleStore:
        """Return the shared store, creating the client on first call.

        Raises:
            StoreNotConfiguredError: No connection string is configured
            UpstreamUnavailableError: The connection string was rejected
        """
        if self._store is not None:
            return self._store

        uri = get_store_uri(self._cfg)
        if not uri:
            raise StoreNotConfiguredError(f"{self._cfg.uri_env} not configured")

        try:
            client = self._client_factory(
                uri,
                serverSelectionTimeoutMS=self._cfg.server_selection_timeout_ms,
            )
        except PyMongoError as exc:
            log_event(
                logger,
                "Store client creation failed",
                level=logging.ERROR,
                event="store_client_failed",
                error=type(exc).__name__,
            )
            raise UpstreamUnavailableError() from exc

        self._client = client
        self._store = MongoArticleStore(client[self._cfg.database][self._cfg.collection])
        log_event(
            logger,
            "Store client created",
            event="store_client_created",
            database=self._cfg.database,
            collection=self._cfg.collection,
        )
        return self._store


def _translate(exc: PyMongoError, query: dict[str, Any]) -> Exception:
    if isinstance(exc, OperationFailure) and _is_regex_failure(exc, query):
        return InvalidPatternError(str(exc))
    log_event(
        logger,
        "Store query failed",
        level=logging.ERROR,
        event="store_query_failed",
        error=type(exc).__name__,
    )
    return UpstreamUnavailableError()


def _is_regex_failure(exc: OperationFailure, query: dict[str, Any]) -> bool:
    uses_regex = any(isinstance(cond, dict) and "$regex" in cond for cond in query.values())
    if not uses_regex:
        return False
    message = str(exc).lower()
    return exc.code in _INVALID_REGEX_CODES or "regular expression" in message or "regex" in message
