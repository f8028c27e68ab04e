"""
Article resolution through an ordered strategy chain.

Each strategy is a pure function from a lookup key to a store query. The
resolver walks the candidates in order and stops at the first match:
1. slug-exact: ``slug`` field equality
2. title-exact-from-slug: case-insensitive whole-title match on the de-hyphenated slug
3. title-loose-from-slug: slug tokens in order, anything between them
4. title-exact: ``title`` field equality

The loose strategy over-matches by nature. It fetches a bounded number of
records, scores each against the slug text with rapidfuzz and only accepts
a single clear survivor; several survivors count as no match, as does a
pattern matching more records than the bound.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
import re
from typing import Any, Callable

from rapidfuzz import fuzz
from rapidfuzz.utils import default_process

from ..config import ResolverConfig
from ..store.base import ArticleStore
from ..utils.logging import get_logger, log_event
from .errors import InvalidPatternError
from .normalize import loose_pattern
from .types import ArticleRecord, LookupCandidate, ResolutionResult, Strategy


def slug_exact_query(key: str) -> dict[str, Any]:
    return {"slug": key}


def title_exact_insensitive_query(key: str) -> dict[str, Any]:
    return {"title": {"$regex": f"^{re.escape(key)}$", "$options": "i"}}


def title_loose_query(tokens: tuple[str, ...]) -> dict[str, Any]:
    return {"title": {"$regex": loose_pattern(tokens), "$options": "i"}}


def title_exact_query(key: str) -> dict[str, Any]:
    return {"title": key}


@dataclass(frozen=True)
class StrategySpec:
    """How one strategy queries the store.

    Attributes:
        strategy: Strategy identifier
        build_query: Pure function from candidate key to store query
        pattern: Whether the query carries a regular expression
        bounded: Whether the strategy reads several records and must pick one
    """
    strategy: Strategy
    build_query: Callable[[Any], dict[str, Any]]
    pattern: bool = False
    bounded: bool = False


STRATEGY_CHAIN: dict[Strategy, StrategySpec] = {
    Strategy.SLUG_EXACT: StrategySpec(Strategy.SLUG_EXACT, slug_exact_query),
    Strategy.TITLE_EXACT_FROM_SLUG: StrategySpec(
        Strategy.TITLE_EXACT_FROM_SLUG, title_exact_insensitive_query, pattern=True
    ),
    Strategy.TITLE_LOOSE_FROM_SLUG: StrategySpec(
        Strategy.TITLE_LOOSE_FROM_SLUG, title_loose_query, pattern=True, bounded=True
    ),
    Strategy.TITLE_EXACT: StrategySpec(Strategy.TITLE_EXACT, title_exact_query),
}


class ArticleResolver:
    """Resolves lookup candidates to at most one article record."""

    def __init__(self, store: ArticleStore, cfg: ResolverConfig, logger: logging.Logger | None = None):
        self._store = store
        self._cfg = cfg
        self._logger = logger or get_logger("resolver")

    async def resolve(self, candidates: list[LookupCandidate]) -> ResolutionResult:
        """Try each candidate in order and return the first match.

        Raises:
            UpstreamUnavailableError: The store failed; distinct from not-found
        """
        attempted: list[Strategy] = []
        for candidate in candidates:
            spec = STRATEGY_CHAIN[candidate.strategy]
            if spec.bounded and not self._cfg.loose_enabled:
                continue
            attempted.append(candidate.strategy)
            record = await self._attempt(spec, candidate)
            if record is not None:
                log_event(
                    self._logger,
                    "Article resolved",
                    event="article_resolved",
                    strategy=str(candidate.strategy),
                    attempted=[str(s) for s in attempted],
                    article_id=record.id,
                )
                return ResolutionResult(
                    record=record,
                    matched_strategy=candidate.strategy,
                    attempted=attempted,
                )

        log_event(
            self._logger,
            "Article not found",
            event="article_not_found",
            attempted=[str(s) for s in attempted],
        )
        return ResolutionResult(attempted=attempted)

    async def _attempt(self, spec: StrategySpec, candidate: LookupCandidate) -> ArticleRecord | None:
        query = spec.build_query(candidate.key)
        if spec.pattern and not _is_valid_pattern(query):
            log_event(
                self._logger,
                "Skipping invalid pattern",
                level=logging.WARNING,
                event="invalid_pattern",
                strategy=str(spec.strategy),
            )
            return None

        try:
            if spec.bounded:
                cap = max(1, self._cfg.loose_max_candidates)
                records = await self._store.find(query, limit=cap + 1)
                if len(records) > cap:
                    log_event(
                        self._logger,
                        "Loose match too broad",
                        event="loose_match_overflow",
                        cap=cap,
                    )
                    return None
                return self._pick_loose(records, candidate.reference or "")
            return await self._store.find_one(query)
        except InvalidPatternError:
            log_event(
                self._logger,
                "Store rejected pattern",
                level=logging.WARNING,
                event="invalid_pattern",
                strategy=str(spec.strategy),
            )
            return None

    def _pick_loose(self, records: list[ArticleRecord], reference: str) -> ArticleRecord | None:
        survivors = [
            record
            for record in records
            if loose_similarity(reference, record.title) >= self._cfg.loose_min_similarity
        ]
        if len(survivors) == 1:
            return survivors[0]
        if len(survivors) > 1:
            log_event(
                self._logger,
                "Loose match ambiguous",
                event="loose_match_ambiguous",
                candidates=len(survivors),
            )
        return None


def loose_similarity(reference: str, title: str) -> float:
    """Score how much of ``title`` the slug text accounts for (0-100).

    Uses rapidfuzz's token_sort_ratio, so extra words in the title lower the
    score while word order and case do not matter.
    """
    return fuzz.token_sort_ratio(reference, title, processor=default_process)


def _is_valid_pattern(query: dict[str, Any]) -> bool:
    for cond in query.values():
        if isinstance(cond, dict) and "$regex" in cond:
            try:
                re.compile(cond["$regex"])
            except re.error:
                return False
    return True
