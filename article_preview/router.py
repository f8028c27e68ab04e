"""
Crawler-aware request routing.

Decides per request whether to leave it alone, rewrite it internally to the
preview endpoint (or the interactive page), or, when rewriting is turned
off, redirect it there. Path shapes handled:
- ``/articles/<slug>`` and ``/article/<slug>``: crawlers go to the preview,
  humans to the interactive page, both carrying the slug
- ``/article.html?title=...`` or ``/article.html?<raw title>``: crawlers only
- anything else: untouched

Routing problems never reach the client. Any failure while deciding falls
back to passing the request through unmodified.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from urllib.parse import quote, unquote, urlencode

from starlette.datastructures import Headers
from starlette.responses import RedirectResponse
from starlette.types import ASGIApp, Receive, Scope, Send

from .config import RoutingConfig
from .core.errors import RoutingFault
from .core.normalize import identifier_from_query, slug_tokens
from .crawlers import CrawlerClassifier
from .utils.logging import get_logger, log_event


PASS = "pass"
REWRITE = "rewrite"
REDIRECT = "redirect"

_ROUTED_METHODS = {"GET", "HEAD"}


@dataclass(frozen=True)
class RouteDecision:
    """Routing outcome for one request.

    Attributes:
        action: PASS, REWRITE or REDIRECT
        path: Target path for REWRITE/REDIRECT
        query: Encoded target querystring
        reason: Short label for logs
    """
    action: str
    path: str | None = None
    query: str = ""
    reason: str = ""

    @property
    def target(self) -> str:
        if not self.path:
            return ""
        return f"{self.path}?{self.query}" if self.query else self.path


PASS_THROUGH = RouteDecision(PASS)


def decide_route(raw_path: str, raw_query: str, is_crawler: bool, cfg: RoutingConfig) -> RouteDecision:
    """Decide how to route a request.

    Args:
        raw_path: Request path, still percent-encoded
        raw_query: Querystring without the leading ``?``
        is_crawler: Crawler classifier output
        cfg: Routing configuration

    Raises:
        RoutingFault: The path segment could not be decoded
    """
    slug = slug_from_path(raw_path, cfg.slug_prefixes)
    if slug is not None:
        query = urlencode({"slug": slug})
        if is_crawler:
            return _finalize(cfg.preview_path, query, cfg, "slug_path_crawler")
        return _finalize(cfg.interactive_path, query, cfg, "slug_path_human")

    if raw_path == cfg.interactive_path:
        if not is_crawler or not raw_query:
            return PASS_THROUGH
        identifier = identifier_from_query(raw_query)
        if identifier.is_empty:
            return PASS_THROUGH
        params = {}
        if identifier.title:
            params["title"] = identifier.title
        if identifier.slug:
            params["slug"] = identifier.slug
        return _finalize(cfg.preview_path, urlencode(params), cfg, "legacy_path_crawler")

    return PASS_THROUGH


def slug_from_path(raw_path: str, prefixes: list[str]) -> str | None:
    """Return the decoded slug when ``raw_path`` is a canonical slug path."""
    for prefix in prefixes:
        if not raw_path.startswith(prefix):
            continue
        segment = raw_path[len(prefix):]
        if segment.endswith("/"):
            segment = segment[:-1]
        if not segment or "/" in segment:
            return None
        try:
            slug = unquote(segment, errors="strict").strip()
        except UnicodeDecodeError as exc:
            raise RoutingFault(f"undecodable slug segment: {segment!r}") from exc
        if not slug_tokens(slug):
            return None
        return slug
    return None


def _finalize(path: str, query: str, cfg: RoutingConfig, reason: str) -> RouteDecision:
    action = REWRITE if cfg.rewrite else REDIRECT
    return RouteDecision(action, path=path, query=query, reason=reason)


class CrawlerRoutingMiddleware:
    """ASGI middleware applying ``decide_route`` to each HTTP request."""

    def __init__(
        self,
        app: ASGIApp,
        classifier: CrawlerClassifier,
        cfg: RoutingConfig,
        logger: logging.Logger | None = None,
    ):
        self.app = app
        self.classifier = classifier
        self.cfg = cfg
        self.logger = logger or get_logger("router")

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope.get("method") not in _ROUTED_METHODS:
            await self.app(scope, receive, send)
            return

        try:
            decision = self._decide(scope)
        except Exception as exc:  # noqa: BLE001
            log_event(
                self.logger,
                "Routing failed, passing request through",
                level=logging.WARNING,
                event="routing_fault",
                path=scope.get("path"),
                error=repr(exc),
            )
            decision = PASS_THROUGH

        if decision.action == PASS:
            await self.app(scope, receive, send)
            return

        log_event(
            self.logger,
            "Routing request",
            event="route_decision",
            action=decision.action,
            reason=decision.reason,
            source=scope.get("path"),
            target=decision.target,
        )

        if decision.action == REDIRECT:
            response = RedirectResponse(decision.target, status_code=307)
            await response(scope, receive, send)
            return

        scope = dict(scope)
        scope["path"] = decision.path
        scope["raw_path"] = decision.path.encode("ascii")
        scope["query_string"] = decision.query.encode("ascii")
        await self.app(scope, receive, send)

    def _decide(self, scope: Scope) -> RouteDecision:
        raw_path_bytes = scope.get("raw_path")
        if raw_path_bytes:
            raw_path = raw_path_bytes.decode("latin-1")
        else:
            raw_path = quote(scope.get("path", ""), safe="/")
        raw_query = scope.get("query_string", b"").decode("latin-1")
        user_agent = Headers(scope=scope).get("user-agent")
        return decide_route(raw_path, raw_query, self.classifier.is_crawler(user_agent), self.cfg)
