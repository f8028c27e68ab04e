"""
HTTP application.

Wires the crawler routing middleware, the preview endpoint, the interactive
article page and the listing/sitemap endpoints into one FastAPI app.

Response contract for the preview endpoint:
- 200: complete HTML preview
- 400: no title or slug supplied
- 404: every lookup strategy exhausted
- 500: store unreachable or not configured
"""

from __future__ import annotations

import logging
from pathlib import Path
import time

from fastapi import FastAPI, Request
from fastapi.responses import FileResponse, HTMLResponse, JSONResponse, PlainTextResponse, Response
from starlette.middleware.base import BaseHTTPMiddleware

from .config import AppConfig, load_config
from .core.errors import BadRequestError, UpstreamUnavailableError
from .core.normalize import build_candidates
from .core.resolver import ArticleResolver
from .core.types import ResolutionResult
from .crawlers import CrawlerClassifier
from .listing import hero_post, list_posts, parse_paging, render_sitemap
from .preview import cache_control, render_preview, request_base_url
from .router import CrawlerRoutingMiddleware
from .store.base import ArticleStore
from .store.mongo import StoreHandle
from .utils.logging import get_logger, log_event


INTERACTIVE_SHELL = """<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width,initial-scale=1">
  <title>Article</title>
</head>
<body>
  <article id="article"><p>Loading&hellip;</p></article>
  <script>
  (function () {
    var params = new URLSearchParams(location.search);
    var query = new URLSearchParams();
    if (params.get("slug")) { query.set("slug", params.get("slug")); }
    else if (params.get("title")) { query.set("title", params.get("title")); }
    else if (location.search.length > 1) { query.set("title", decodeURIComponent(location.search.slice(1))); }
    var root = document.getElementById("article");
    fetch("/api/posts?" + query.toString())
      .then(function (res) { return res.ok ? res.json() : Promise.reject(res.status); })
      .then(function (data) {
        var post = data.post;
        document.title = post.title;
        root.innerHTML = "";
        var h1 = document.createElement("h1");
        h1.textContent = post.title;
        root.appendChild(h1);
        if (post.url) {
          var img = document.createElement("img");
          img.src = post.url;
          img.alt = post.title;
          img.style.maxWidth = "100%";
          root.appendChild(img);
        }
        post.body.split(/\\n+/).forEach(function (text) {
          var p = document.createElement("p");
          p.textContent = text;
          root.appendChild(p);
        });
      })
      .catch(function () { root.textContent = "Article not found."; });
  })();
  </script>
</body>
</html>
"""


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start_time = time.time()
        response = await call_next(request)
        duration_ms = (time.time() - start_time) * 1000
        log_event(
            get_logger("http"),
            f'"{request.method} {request.url.path}" {response.status_code} {duration_ms:.0f}ms',
            event="http_request",
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            duration_ms=round(duration_ms, 1),
        )
        return response


def create_app(cfg: AppConfig | None = None, store: ArticleStore | None = None) -> FastAPI:
    """Build the application.

    Args:
        cfg: Configuration; defaults plus environment when omitted
        store: Prebuilt article store; when omitted a MongoDB client is
            created lazily on the first request that needs one
    """
    cfg = cfg or load_config(None)
    handle = StoreHandle(cfg.store, store=store)
    classifier = CrawlerClassifier.from_config(cfg.crawlers)
    logger = get_logger("app")

    app = FastAPI(title="Article Preview", docs_url=None, redoc_url=None, openapi_url=None)
    app.state.config = cfg
    app.state.store_handle = handle
    app.state.classifier = classifier

    app.add_middleware(CrawlerRoutingMiddleware, classifier=classifier, cfg=cfg.routing)
    app.add_middleware(RequestLoggingMiddleware)

    async def resolve(title: str | None, slug: str | None) -> ResolutionResult:
        candidates = build_candidates(title=title, slug=slug)
        if not candidates:
            raise BadRequestError()
        resolver = ArticleResolver(handle.get(), cfg.resolver)
        return await resolver.resolve(candidates)

    @app.get(cfg.routing.preview_path)
    async def preview(request: Request) -> Response:
        params = request.query_params
        slug = params.get("slug")
        try:
            result = await resolve(params.get("title") or params.get("t"), slug)
        except BadRequestError as exc:
            return PlainTextResponse(exc.message, status_code=exc.status_code)
        except UpstreamUnavailableError as exc:
            log_event(logger, "Preview failed", level=logging.ERROR, event="preview_error", error=exc.message)
            return PlainTextResponse(exc.message, status_code=exc.status_code)

        if not result.found:
            return PlainTextResponse("Not found", status_code=404, headers=result.diagnostic_headers())

        base_url = request_base_url(request.headers, request.url.scheme, cfg.preview.site_url)
        document = render_preview(result, base_url, cfg.preview, cfg.routing, requested_slug=slug)
        return HTMLResponse(document.html, status_code=document.status_code, headers=document.headers)

    @app.get(cfg.routing.interactive_path)
    async def interactive_page() -> Response:
        return _interactive_response(cfg)

    for prefix in cfg.routing.slug_prefixes:
        # Reached only when the routing middleware passed a slug path through.
        app.add_api_route(f"{prefix.rstrip('/')}/{{slug}}", interactive_page, methods=["GET"])

    @app.get("/api/posts")
    async def posts(request: Request) -> Response:
        params = request.query_params
        headers = {
            "Cache-Control": cache_control(cfg.listing.cache_max_age, cfg.listing.stale_while_revalidate)
        }
        try:
            title = params.get("title") or params.get("t")
            if title or params.get("slug"):
                result = await resolve(title, params.get("slug"))
                if not result.found:
                    headers.update(result.diagnostic_headers())
                    return JSONResponse({"error": "Not found"}, status_code=404, headers=headers)
                headers.update(result.diagnostic_headers())
                payload = {"post": result.record.to_payload()}
            elif params.get("hero") == "1":
                payload = await hero_post(handle.get())
            else:
                page, per_page = parse_paging(params.get("page"), params.get("perPage"), cfg.listing)
                payload = await list_posts(handle.get(), page, per_page)
        except BadRequestError as exc:
            return JSONResponse({"error": exc.message}, status_code=exc.status_code)
        except UpstreamUnavailableError as exc:
            log_event(logger, "Listing failed", level=logging.ERROR, event="listing_error", error=exc.message)
            return JSONResponse({"error": exc.message}, status_code=exc.status_code)
        return JSONResponse(payload, headers=headers)

    @app.get("/sitemap.xml")
    async def sitemap() -> Response:
        try:
            records = await handle.get().latest()
        except UpstreamUnavailableError as exc:
            log_event(logger, "Sitemap failed", level=logging.ERROR, event="sitemap_error", error=exc.message)
            return JSONResponse({"error": "Failed to generate sitemap"}, status_code=exc.status_code)
        xml = render_sitemap(records, cfg.preview.site_url, cfg.preview, cfg.routing)
        return Response(
            xml,
            media_type="application/xml",
            headers={"Cache-Control": f"public, s-maxage={cfg.listing.sitemap_cache_max_age}"},
        )

    return app


def _interactive_response(cfg: AppConfig) -> Response:
    if cfg.routing.static_dir:
        page = Path(cfg.routing.static_dir) / Path(cfg.routing.interactive_path).name
        if page.is_file():
            return FileResponse(page, media_type="text/html")
    return HTMLResponse(INTERACTIVE_SHELL)
