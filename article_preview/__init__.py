"""
Article Preview - crawler-aware article serving.

This package serves news articles to two audiences: browsers get the
interactive, client-rendered page, while social and search crawlers get a
server-rendered HTML document carrying Open Graph and Twitter card tags.

Main entry point is the CLI via `article-preview serve`.

Example:
    $ article-preview serve --port 8000 --static-dir public/
"""

__all__ = [
    "__version__",
    "ArticleResolver",
    "CrawlerClassifier",
    "build_candidates",
    "create_app",
    "render_preview",
]
__version__ = "0.1.0"

from .app import create_app
from .core.normalize import build_candidates
from .core.resolver import ArticleResolver
from .crawlers import CrawlerClassifier
from .preview import render_preview
