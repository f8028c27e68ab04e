"""Abstract interface for the read-only article store."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from ..core.types import ArticleRecord


class ArticleStore(ABC):
    """Read-only article queries.

    Filters use MongoDB query syntax restricted to what the resolver emits:
    field equality and ``{"$regex": ..., "$options": "i"}`` on ``title``.
    Every method returns records limited to ``ARTICLE_PROJECTION``.
    """

    @abstractmethod
    async def find_one(self, query: dict[str, Any]) -> ArticleRecord | None:
        """Return the first record matching ``query``."""
        raise NotImplementedError

    @abstractmethod
    async def find(self, query: dict[str, Any], limit: int) -> list[ArticleRecord]:
        """Return up to ``limit`` records matching ``query``."""
        raise NotImplementedError

    @abstractmethod
    async def count(self) -> int:
        """Return the total number of articles."""
        raise NotImplementedError

    @abstractmethod
    async def latest(self, skip: int = 0, limit: int | None = None) -> list[ArticleRecord]:
        """Return articles newest first, skipping ``skip`` and capped at ``limit``."""
        raise NotImplementedError
