"""
Crawler classification by declared user agent.

A static allow-list of substrings, matched case-insensitively. This is not
bot detection: a missed crawler just gets the interactive page, while a
human misread as a crawler loses it, so the list stays conservative.
"""

from __future__ import annotations

from .config import CrawlerConfig


class CrawlerClassifier:
    """Decides whether a user agent belongs to an automated preview consumer."""

    def __init__(self, signatures: list[str]):
        cleaned = {sig.strip().lower() for sig in signatures if sig and sig.strip()}
        self._signatures = tuple(sorted(cleaned))

    @classmethod
    def from_config(cls, cfg: CrawlerConfig) -> "CrawlerClassifier":
        return cls(cfg.signatures)

    @property
    def signatures(self) -> tuple[str, ...]:
        return self._signatures

    def is_crawler(self, user_agent: str | None) -> bool:
        if not user_agent:
            return False
        agent = user_agent.lower()
        return any(sig in agent for sig in self._signatures)

    def match(self, user_agent: str | None) -> str | None:
        """Return the first signature found in ``user_agent``, for diagnostics."""
        if not user_agent:
            return None
        agent = user_agent.lower()
        for sig in self._signatures:
            if sig in agent:
                return sig
        return None
