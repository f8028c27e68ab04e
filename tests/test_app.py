"""End-to-end HTTP tests against the application with an in-memory store."""

from fastapi.testclient import TestClient

from article_preview.app import create_app
from article_preview.store.mongo import StoreHandle

from conftest import FakeArticleStore


BOT = "facebookexternalhit/1.1 (+http://www.facebook.com/externalhit_uatext.php)"
HUMAN = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 Chrome/120.0 Safari/537.36"


def _client(store, cfg) -> TestClient:
    return TestClient(create_app(cfg, store=store), base_url="https://site.example")


def test_crawler_slug_path_returns_preview(store, app_config):
    client = _client(store, app_config)
    response = client.get("/articles/downtown-flood-update-2024", headers={"User-Agent": BOT})

    assert response.status_code == 200
    assert response.headers["content-type"] == "text/html; charset=utf-8"
    assert '<meta property="og:title" content="Downtown Flood Update 2024">' in response.text
    assert response.headers["x-preview-strategy"] in {"slug-exact", "title-exact-from-slug"}
    assert "stale-while-revalidate" in response.headers["cache-control"]
    assert response.history == []


def test_relative_image_absolutized_against_request_host(store, app_config):
    client = _client(store, app_config)
    response = client.get("/api/preview?title=Downtown%20Flood%20Update%202024")

    assert response.status_code == 200
    assert '<meta property="og:image" content="https://site.example/img/flood.jpg">' in response.text
    assert response.headers["x-preview-strategy"] == "title-exact"


def test_preview_missing_identifier_is_bad_request(store, app_config):
    client = _client(store, app_config)

    assert client.get("/api/preview").status_code == 400
    assert client.get("/api/preview?title=%20%20").status_code == 400
    assert store.queries == []


def test_preview_not_found(store, app_config):
    client = _client(store, app_config)
    response = client.get("/api/preview?title=Nonexistent")

    assert response.status_code == 404
    assert response.text == "Not found"
    assert response.headers["x-preview-strategy"] == "none"
    assert response.headers["x-preview-attempted"] == "title-exact"
    assert store.queries == [{"title": "Nonexistent"}]


def test_preview_store_failure_is_500_without_details(sample_docs, app_config):
    client = _client(FakeArticleStore(sample_docs, fail=True), app_config)
    response = client.get("/api/preview?slug=rodeo-season-opens")

    assert response.status_code == 500
    assert response.text == "Database error"


def test_preview_without_connection_string_is_explicit_500(app_config, monkeypatch):
    monkeypatch.delenv("MONGODB_URI", raising=False)
    client = TestClient(create_app(app_config))
    response = client.get("/api/preview?title=Anything")

    assert response.status_code == 500
    assert "MONGODB_URI not configured" in response.text


def test_human_legacy_request_is_not_rewritten(store, app_config):
    client = _client(store, app_config)
    response = client.get("/article.html?title=X", headers={"User-Agent": HUMAN})

    assert response.status_code == 200
    assert "og:title" not in response.text
    assert store.queries == []


def test_crawler_legacy_raw_query_gets_preview(store, app_config):
    client = _client(store, app_config)
    response = client.get("/article.html?Rodeo%20Season%20Opens", headers={"User-Agent": BOT})

    assert response.status_code == 200
    assert '<meta property="og:title" content="Rodeo Season Opens">' in response.text
    assert '<meta property="og:image" content="https://cdn.example.com/rodeo.jpg">' in response.text


def test_crawler_unknown_slug_is_404(store, app_config):
    client = _client(store, app_config)
    response = client.get("/articles/no-such-story", headers={"User-Agent": BOT})
    assert response.status_code == 404


def test_human_slug_path_serves_interactive_page(store, app_config):
    client = _client(store, app_config)
    response = client.get("/articles/rodeo-season-opens", headers={"User-Agent": HUMAN})

    assert response.status_code == 200
    assert "/api/posts?" in response.text
    assert "og:title" not in response.text


def test_interactive_page_served_from_static_dir(store, app_config, tmp_path):
    (tmp_path / "article.html").write_text("<html>static article page</html>", encoding="utf-8")
    app_config.routing.static_dir = str(tmp_path)
    client = _client(store, app_config)

    response = client.get("/article.html?title=X", headers={"User-Agent": HUMAN})
    assert response.text == "<html>static article page</html>"


def test_redirect_mode_for_crawlers(store, app_config):
    app_config.routing.rewrite = False
    client = _client(store, app_config)

    response = client.get(
        "/articles/rodeo-season-opens", headers={"User-Agent": BOT}, follow_redirects=False
    )
    assert response.status_code == 307
    assert response.headers["location"] == "/api/preview?slug=rodeo-season-opens"


def test_store_handle_is_reused_across_requests(store, app_config):
    app = create_app(app_config, store=store)
    client = TestClient(app, base_url="https://site.example")
    handle: StoreHandle = app.state.store_handle

    client.get("/api/preview?title=Rodeo%20Season%20Opens")
    first = handle.get()
    client.get("/api/preview?title=Rodeo%20Season%20Opens")

    assert handle.get() is first is store
