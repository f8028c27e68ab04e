"""
Core data types for the article preview service.

This module defines the fundamental data structures used throughout a request:
- ArticleRecord: Read-only view of a stored article document
- Strategy: Identifiers of the lookup strategies, in precedence order
- LookupCandidate: One (strategy, key) pair derived from a request identifier
- ResolutionResult: Outcome of running the strategy chain
- PreviewDocument: Rendered crawler-facing HTML plus response headers
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


# Fields fetched from the store. Nothing outside this projection leaves the store layer.
ARTICLE_PROJECTION = {
    "_id": 1,
    "title": 1,
    "slug": 1,
    "url": 1,
    "body": 1,
    "publishedAt": 1,
    "scrapedAt": 1,
}


class Strategy(str, Enum):
    """Lookup strategies, declared in the order they must be attempted."""

    SLUG_EXACT = "slug-exact"
    TITLE_EXACT_FROM_SLUG = "title-exact-from-slug"
    TITLE_LOOSE_FROM_SLUG = "title-loose-from-slug"
    TITLE_EXACT = "title-exact"

    def __str__(self) -> str:
        return self.value


@dataclass
class ArticleRecord:
    """Represents a stored article.

    Attributes:
        id: Opaque store identifier, stringified
        title: Display title; treated as unique for lookups
        slug: Precomputed URL slug, absent on older records
        url: Representative image link, possibly relative
        body: Free text content
        published_at: Publication or capture time
    """
    id: str
    title: str
    slug: str | None = None
    url: str | None = None
    body: str = ""
    published_at: datetime | None = None

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "ArticleRecord":
        """Build a record from a raw store document, ignoring unprojected fields."""
        published = doc.get("publishedAt") or doc.get("scrapedAt")
        return cls(
            id=str(doc.get("_id", "")),
            title=doc.get("title") or "",
            slug=doc.get("slug") or None,
            url=doc.get("url") or None,
            body=doc.get("body") or "",
            published_at=_coerce_datetime(published),
        )

    def to_payload(self) -> dict[str, Any]:
        """Serialize for the JSON listing API."""
        return {
            "_id": self.id,
            "title": self.title,
            "slug": self.slug,
            "url": self.url or "",
            "body": self.body,
            "scrapedAt": self.published_iso(),
        }

    def published_iso(self) -> str | None:
        if self.published_at is None:
            return None
        return self.published_at.isoformat()


@dataclass(frozen=True)
class LookupCandidate:
    """A single lookup attempt.

    Attributes:
        strategy: Which matching rule to apply
        key: Strategy input; a string for exact strategies, a tuple of
            pattern-escaped lowercase tokens for the loose strategy
        reference: Unescaped text the loose strategy scores matches against
    """
    strategy: Strategy
    key: Any
    reference: str | None = None


@dataclass
class ResolutionResult:
    """Outcome of resolving one identifier.

    A record is never present without the strategy that produced it.

    Attributes:
        record: The resolved article, or None when no strategy matched
        matched_strategy: Strategy that produced the record, or None
        attempted: Strategies tried, in order, including the matching one
    """
    record: ArticleRecord | None = None
    matched_strategy: Strategy | None = None
    attempted: list[Strategy] = field(default_factory=list)

    @property
    def found(self) -> bool:
        return self.record is not None

    @property
    def via_slug(self) -> bool:
        """Whether resolution was based on a slug identifier."""
        return self.matched_strategy in {
            Strategy.SLUG_EXACT,
            Strategy.TITLE_EXACT_FROM_SLUG,
            Strategy.TITLE_LOOSE_FROM_SLUG,
        }

    def diagnostic_headers(self) -> dict[str, str]:
        return {
            "X-Preview-Strategy": str(self.matched_strategy) if self.matched_strategy else "none",
            "X-Preview-Attempted": ",".join(str(s) for s in self.attempted) or "none",
        }


@dataclass
class PreviewDocument:
    """Fully rendered preview response.

    Attributes:
        html: Complete HTML document
        headers: Response headers (content type, caching, diagnostics)
        status_code: HTTP status
    """
    html: str
    headers: dict[str, str] = field(default_factory=dict)
    status_code: int = 200


def _coerce_datetime(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            # Store timestamps are UTC; drivers hand them back naive.
            return value.replace(tzinfo=timezone.utc)
        return value
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
    return None
