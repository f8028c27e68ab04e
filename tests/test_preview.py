"""Tests for preview document synthesis."""

import re
from datetime import datetime, timezone

from article_preview.config import PreviewConfig, RoutingConfig
from article_preview.core.types import ArticleRecord, ResolutionResult, Strategy
from article_preview.preview import (
    absolutize_image,
    build_description,
    canonical_url,
    render_preview,
    request_base_url,
)


def _result(record: ArticleRecord, strategy: Strategy = Strategy.TITLE_EXACT) -> ResolutionResult:
    return ResolutionResult(record=record, matched_strategy=strategy, attempted=[strategy])


def test_description_collapses_whitespace_and_truncates():
    body = "First   line\n\n  second\tline " + "x" * 300
    description = build_description(body, "truncate", 200)

    assert description.startswith("First line second line x")
    assert len(description) == 200


def test_description_first_paragraph_mode():
    body = "\n\nLead paragraph here.\nSecond paragraph."
    assert build_description(body, "first_paragraph", 200) == "Lead paragraph here."


def test_description_of_empty_body():
    assert build_description("", "truncate", 200) == ""
    assert build_description("", "first_paragraph", 200) == ""


def test_absolutize_relative_image():
    assert absolutize_image("/img/a.jpg", "https://site.example") == "https://site.example/img/a.jpg"
    assert absolutize_image("img/a.jpg", "https://site.example/") == "https://site.example/img/a.jpg"


def test_absolute_image_is_untouched():
    url = "https://cdn.example.com/a.jpg?w=1200"
    assert absolutize_image(url, "https://site.example") == url


def test_protocol_relative_image_takes_base_scheme():
    assert absolutize_image("//cdn.example.com/a.jpg", "http://site.example") == "http://cdn.example.com/a.jpg"


def test_empty_or_unsafe_image_uses_default():
    assert absolutize_image("", "https://site.example", "/img/default.jpg") == "https://site.example/img/default.jpg"
    assert absolutize_image("javascript:alert(1)", "https://site.example", "/img/d.jpg") == (
        "https://site.example/img/d.jpg"
    )
    assert absolutize_image(None, "https://site.example", "") == ""


def test_request_base_url_prefers_forwarded_headers():
    headers = {"host": "internal:8000", "x-forwarded-proto": "https", "x-forwarded-host": "site.example"}
    assert request_base_url(headers, "http", "https://fallback.example") == "https://site.example"


def test_request_base_url_rejects_malformed_host():
    headers = {"host": 'evil.example"><script>'}
    assert request_base_url(headers, "https", "https://fallback.example/") == "https://fallback.example"
    assert request_base_url({}, "https", "https://fallback.example") == "https://fallback.example"


def test_canonical_url_prefers_slug_when_slug_resolved():
    routing = RoutingConfig()
    record = ArticleRecord(id="1", title="Rodeo Season Opens", slug="rodeo-season-opens")

    assert canonical_url("https://site.example", record, True, routing) == (
        "https://site.example/articles/rodeo-season-opens"
    )
    assert canonical_url("https://site.example", record, False, routing) == (
        "https://site.example/article.html?title=Rodeo%20Season%20Opens"
    )


def test_canonical_url_uses_requested_slug_for_slugless_record():
    record = ArticleRecord(id="1", title="Downtown Flood Update 2024")
    url = canonical_url(
        "https://site.example", record, True, RoutingConfig(), requested_slug="downtown-flood-update-2024"
    )
    assert url == "https://site.example/articles/downtown-flood-update-2024"


def test_render_preview_contains_metadata_and_headers():
    record = ArticleRecord(
        id="flood",
        title="Downtown Flood Update 2024",
        url="/img/a.jpg",
        body="Water levels rose overnight.",
        published_at=datetime(2024, 5, 3, 12, 0, tzinfo=timezone.utc),
    )
    document = render_preview(
        _result(record, Strategy.TITLE_EXACT_FROM_SLUG),
        "https://site.example",
        PreviewConfig(),
        RoutingConfig(),
        requested_slug="downtown-flood-update-2024",
    )

    assert '<meta property="og:title" content="Downtown Flood Update 2024">' in document.html
    assert '<meta property="og:image" content="https://site.example/img/a.jpg">' in document.html
    assert '<meta name="twitter:card" content="summary_large_image">' in document.html
    assert '<meta property="article:published_time" content="2024-05-03T12:00:00+00:00">' in document.html
    assert '<link rel="canonical" href="https://site.example/articles/downtown-flood-update-2024">' in document.html
    assert document.html.rstrip().endswith("</html>")
    assert document.headers["Content-Type"] == "text/html; charset=utf-8"
    assert "stale-while-revalidate=120" in document.headers["Cache-Control"]
    assert "s-maxage=60" in document.headers["Cache-Control"]
    assert document.headers["X-Preview-Strategy"] == "title-exact-from-slug"
    assert document.headers["X-Preview-Attempted"] == "title-exact-from-slug"


def test_render_preview_escapes_all_content():
    hostile = "<script>alert(\"x\")</script> & 'quoted'"
    record = ArticleRecord(id="x", title=hostile, url='/img/"><b>.jpg', body=hostile)
    document = render_preview(_result(record), "https://site.example", PreviewConfig(), RoutingConfig())

    assert "<script>" not in document.html
    assert "&lt;script&gt;" in document.html
    assert "&#39;quoted&#39;" in document.html
    assert "<b>" not in document.html
    # Every attribute value is free of raw quotes and angle brackets.
    for value in re.findall(r'content="([^"]*)"', document.html):
        assert "<" not in value and ">" not in value and "'" not in value
    # Bare ampersands only appear as the start of entities.
    assert re.search(r"&(?!amp;|lt;|gt;|#34;|#39;|quot;|hellip;)", document.html) is None


def test_render_preview_without_image_uses_default():
    record = ArticleRecord(id="x", title="No Image")
    cfg = PreviewConfig(default_image="https://site.example/share.png")
    document = render_preview(_result(record), "https://site.example", cfg, RoutingConfig())
    assert '<meta property="og:image" content="https://site.example/share.png">' in document.html
