"""
Article listing API and sitemap.

Serves the home page grid (most recent article as the hero, the rest
paginated beneath it) and a news/image sitemap whose article URLs use the
same canonical forms as the preview documents.
"""

from __future__ import annotations

from typing import Any

from .config import ListingConfig, PreviewConfig, RoutingConfig
from .core.types import ArticleRecord
from .preview import absolutize_image, build_description, canonical_url, template_environment
from .store.base import ArticleStore


async def hero_post(store: ArticleStore) -> dict[str, Any]:
    """Return the most recent article, or ``{"post": None}`` on an empty store."""
    latest = await store.latest(skip=0, limit=1)
    return {"post": latest[0].to_payload() if latest else None}


async def list_posts(store: ArticleStore, page: int, per_page: int) -> dict[str, Any]:
    """Return one page of the story grid.

    The hero (most recent article) is excluded from both the page contents
    and the reported total.
    """
    total = await store.count()
    hero_offset = 1 if total > 0 else 0
    skip = max(0, (page - 1) * per_page) + hero_offset
    records = await store.latest(skip=skip, limit=per_page)
    return {
        "posts": [record.to_payload() for record in records],
        "total": max(0, total - hero_offset),
    }


def parse_paging(page: str | None, per_page: str | None, cfg: ListingConfig) -> tuple[int, int]:
    """Parse page/perPage query values, falling back to defaults on junk input."""
    page_num = _positive_int(page, 1)
    size = _positive_int(per_page, cfg.per_page)
    return page_num, min(size, cfg.max_per_page)


def render_sitemap(
    records: list[ArticleRecord],
    base_url: str,
    preview: PreviewConfig,
    routing: RoutingConfig,
) -> str:
    entries = []
    for record in records:
        if not record.title:
            continue
        image = absolutize_image(record.url, base_url) if record.url else ""
        entries.append(
            {
                "loc": canonical_url(base_url, record, bool(record.slug), routing),
                "title": record.title,
                "published": record.published_iso(),
                "image": image,
                "caption": build_description(
                    record.body, "first_paragraph", preview.description_max_chars
                ),
            }
        )
    return template_environment().get_template("sitemap.xml").render(
        entries=entries,
        site_name=preview.site_name,
    )


def _positive_int(value: str | None, default: int) -> int:
    try:
        parsed = int(value) if value is not None else default
    except ValueError:
        return default
    return parsed if parsed > 0 else default
