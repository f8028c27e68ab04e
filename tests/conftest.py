"""Shared fixtures: an in-memory store that evaluates the resolver's Mongo filters."""

from __future__ import annotations

from datetime import datetime, timezone
import re
from typing import Any

import pytest

from article_preview.config import AppConfig
from article_preview.core.errors import InvalidPatternError, UpstreamUnavailableError
from article_preview.core.types import ArticleRecord
from article_preview.store.base import ArticleStore


class FakeArticleStore(ArticleStore):
    def __init__(self, docs: list[dict[str, Any]], fail: bool = False):
        self.docs = list(docs)
        self.fail = fail
        self.queries: list[dict[str, Any]] = []

    def _check(self, query: dict[str, Any]) -> None:
        self.queries.append(query)
        if self.fail:
            raise UpstreamUnavailableError()

    def _matches(self, doc: dict[str, Any], query: dict[str, Any]) -> bool:
        for field, cond in query.items():
            value = doc.get(field)
            if isinstance(cond, dict) and "$regex" in cond:
                flags = re.IGNORECASE if "i" in cond.get("$options", "") else 0
                try:
                    pattern = re.compile(cond["$regex"], flags)
                except re.error as exc:
                    raise InvalidPatternError(str(exc)) from exc
                if not isinstance(value, str) or not pattern.search(value):
                    return False
            elif value != cond:
                return False
        return True

    async def find_one(self, query):
        self._check(query)
        for doc in self.docs:
            if self._matches(doc, query):
                return ArticleRecord.from_document(doc)
        return None

    async def find(self, query, limit):
        self._check(query)
        hits = [doc for doc in self.docs if self._matches(doc, query)]
        return [ArticleRecord.from_document(doc) for doc in hits[:limit]]

    async def count(self):
        self._check({})
        return len(self.docs)

    async def latest(self, skip=0, limit=None):
        self._check({})
        ordered = sorted(
            self.docs,
            key=lambda d: d.get("scrapedAt") or datetime.min.replace(tzinfo=timezone.utc),
            reverse=True,
        )
        ordered = ordered[skip:]
        if limit is not None:
            ordered = ordered[:limit]
        return [ArticleRecord.from_document(doc) for doc in ordered]


def make_doc(
    title: str,
    slug: str | None = None,
    url: str | None = None,
    body: str = "",
    day: int = 1,
    doc_id: str | None = None,
) -> dict[str, Any]:
    doc = {
        "_id": doc_id or title.lower(),
        "title": title,
        "url": url,
        "body": body,
        "scrapedAt": datetime(2024, 5, day, 12, 0, tzinfo=timezone.utc),
        "internalNotes": "never projected",
    }
    if slug is not None:
        doc["slug"] = slug
    return doc


@pytest.fixture
def sample_docs() -> list[dict[str, Any]]:
    return [
        make_doc(
            "Downtown Flood Update 2024",
            url="/img/flood.jpg",
            body="Water levels rose overnight.\nCrews are pumping streets.",
            day=3,
            doc_id="flood",
        ),
        make_doc(
            "Rodeo Season Opens",
            slug="rodeo-season-opens",
            url="https://cdn.example.com/rodeo.jpg",
            body="The rodeo returns this weekend.",
            day=2,
            doc_id="rodeo",
        ),
        make_doc(
            "Metro Rail Expansion Approved By Council",
            body="Council voted 9-2.",
            day=1,
            doc_id="rail",
        ),
    ]


@pytest.fixture
def store(sample_docs) -> FakeArticleStore:
    return FakeArticleStore(sample_docs)


@pytest.fixture
def app_config() -> AppConfig:
    cfg = AppConfig()
    cfg.logging.console = False
    return cfg
