"""
Preview document synthesis for crawlers.

Builds a complete, server-rendered HTML document with Open Graph and
Twitter card metadata from a resolved article. Rendering goes through a
Jinja2 template with autoescaping, so every interpolated title, description,
image URL and canonical URL has ``& < > " '`` escaped.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
import re
from typing import Mapping
from urllib.parse import quote, urlencode, urlsplit

from jinja2 import Environment, FileSystemLoader, select_autoescape

from .config import PreviewConfig, RoutingConfig
from .core.normalize import collapse_whitespace
from .core.types import ArticleRecord, PreviewDocument, ResolutionResult


_PARAGRAPH_BREAK_RE = re.compile(r"\r?\n")
_HOST_RE = re.compile(r"^[A-Za-z0-9.\-]+(:\d{1,5})?$|^\[[0-9A-Fa-f:.]+\](:\d{1,5})?$")
_WEB_SCHEMES = {"http", "https"}


@lru_cache(maxsize=1)
def template_environment() -> Environment:
    return Environment(
        loader=FileSystemLoader(str(Path(__file__).parent / "templates")),
        autoescape=select_autoescape(["html", "xml"]),
        trim_blocks=True,
        lstrip_blocks=True,
    )


def build_description(body: str, mode: str = "truncate", max_chars: int = 200) -> str:
    """Derive a short description from article body text.

    Args:
        body: Raw body text
        mode: "truncate" collapses all whitespace and cuts to ``max_chars``;
            "first_paragraph" keeps the text before the first line break
        max_chars: Upper bound on the description length in either mode
    """
    text = body or ""
    if mode == "first_paragraph":
        for paragraph in _PARAGRAPH_BREAK_RE.split(text):
            if paragraph.strip():
                text = paragraph
                break
        else:
            text = ""
    return collapse_whitespace(text)[:max_chars].rstrip()


def request_base_url(headers: Mapping[str, str], scheme: str | None, fallback: str) -> str:
    """Return ``scheme://host`` for the request, or ``fallback`` when the host is unusable.

    Honors ``X-Forwarded-Proto`` and ``X-Forwarded-Host`` from the edge proxy.
    """
    proto = (headers.get("x-forwarded-proto") or scheme or "https").split(",")[0].strip().lower()
    host = (headers.get("x-forwarded-host") or headers.get("host") or "").split(",")[0].strip()
    if proto not in _WEB_SCHEMES or not host or not _HOST_RE.match(host):
        return fallback.rstrip("/")
    return f"{proto}://{host}"


def absolutize_image(url: str | None, base_url: str, default_image: str = "") -> str:
    """Make an image URL absolute against ``base_url``.

    Absolute http(s) URLs are returned untouched, protocol-relative ones take
    the base scheme, and relative paths are joined to the base. Empty values
    and non-web schemes fall back to ``default_image``.
    """
    candidate = (url or "").strip()
    if not candidate or not _is_web_or_relative(candidate):
        candidate = (default_image or "").strip()
        if not candidate:
            return ""

    parts = urlsplit(candidate)
    if parts.scheme in _WEB_SCHEMES and parts.netloc:
        return candidate
    if candidate.startswith("//"):
        scheme = urlsplit(base_url).scheme or "https"
        return f"{scheme}:{candidate}"
    if not base_url:
        return candidate
    return f"{base_url.rstrip('/')}/{candidate.lstrip('/')}"


def canonical_url(
    base_url: str,
    record: ArticleRecord,
    via_slug: bool,
    routing: RoutingConfig,
    requested_slug: str | None = None,
) -> str:
    """Return the canonical article URL.

    The slug path form is used when a slug was the basis of resolution,
    otherwise the legacy ``?title=`` form.
    """
    base = base_url.rstrip("/")
    slug = record.slug or requested_slug
    if via_slug and slug:
        prefix = routing.slug_prefixes[0] if routing.slug_prefixes else "/articles/"
        return f"{base}{prefix}{quote(slug, safe='')}"
    return f"{base}{routing.interactive_path}?{urlencode({'title': record.title}, quote_via=quote)}"


def cache_control(max_age: int, stale_while_revalidate: int) -> str:
    return (
        f"public, max-age={max_age}, s-maxage={max_age}, "
        f"stale-while-revalidate={stale_while_revalidate}"
    )


def render_preview(
    result: ResolutionResult,
    base_url: str,
    cfg: PreviewConfig,
    routing: RoutingConfig,
    requested_slug: str | None = None,
) -> PreviewDocument:
    """Render the crawler-facing preview for a resolved article.

    The whole document is produced before it is returned, so callers never
    send a partially written page.

    Raises:
        ValueError: ``result`` carries no record
    """
    record = result.record
    if record is None:
        raise ValueError("render_preview requires a resolved record")

    description = build_description(record.body, cfg.description_mode, cfg.description_max_chars)
    image = absolutize_image(record.url, base_url, cfg.default_image)
    canonical = canonical_url(base_url, record, result.via_slug, routing, requested_slug)

    html = template_environment().get_template("preview.html").render(
        title=record.title,
        description=description,
        image=image,
        canonical_url=canonical,
        published=record.published_iso() or "",
        site_name=cfg.site_name,
    )

    headers = {
        "Content-Type": "text/html; charset=utf-8",
        "Cache-Control": cache_control(cfg.cache_max_age, cfg.stale_while_revalidate),
    }
    headers.update(result.diagnostic_headers())
    return PreviewDocument(html=html, headers=headers)


def _is_web_or_relative(url: str) -> bool:
    scheme = urlsplit(url).scheme
    return not scheme or scheme.lower() in _WEB_SCHEMES
