"""
Configuration management using YAML files and dataclasses.

This module defines all configuration dataclasses and provides loading
from YAML files with defaults. Configuration sections:
- StoreConfig: Document store connection settings
- CrawlerConfig: Crawler signature allow-list
- ResolverConfig: Article resolution strategy settings
- PreviewConfig: Preview document and cache header settings
- RoutingConfig: Path shapes and rewrite behavior
- ListingConfig: Article listing and sitemap settings
- LoggingConfig: Logging behavior
- AppConfig: Root configuration container
"""

from __future__ import annotations

from dataclasses import dataclass, field
import os
from typing import Any

import yaml


DEFAULT_CRAWLER_SIGNATURES = [
    # Search indexers
    "googlebot",
    "google-inspectiontool",
    "bingbot",
    "yahoo! slurp",
    "duckduckbot",
    "applebot",
    "yandexbot",
    "baiduspider",
    # Social link unfurlers
    "facebookexternalhit",
    "facebookcatalog",
    "twitterbot",
    "linkedinbot",
    "slackbot",
    "slack-imgproxy",
    "discordbot",
    "telegrambot",
    "whatsapp",
    "pinterestbot",
    "redditbot",
    "skypeuripreview",
    "embedly",
    "vkshare",
    "mastodon",
]


@dataclass
class StoreConfig:
    """Configuration for the article document store.

    Attributes:
        uri: Inline connection string (overrides the environment variable)
        uri_env: Environment variable holding the connection string
        database: Database name
        collection: Collection holding article documents
        server_selection_timeout_ms: How long a query waits for a reachable server
    """

    uri: str | None = None
    uri_env: str = "MONGODB_URI"
    database: str = "HourlyHouston"
    collection: str = "Articles"
    server_selection_timeout_ms: int = 5000


@dataclass
class CrawlerConfig:
    """Configuration for crawler classification.

    Attributes:
        signatures: Case-insensitive substrings identifying automated preview consumers.
            Keep this list conservative: misclassifying a human is worse than missing a bot.
    """

    signatures: list[str] = field(default_factory=lambda: list(DEFAULT_CRAWLER_SIGNATURES))


@dataclass
class ResolverConfig:
    """Configuration for article resolution.

    Attributes:
        loose_enabled: Whether the token-sequence fallback strategy runs at all
        loose_max_candidates: Most pattern matches the loose strategy will weigh; more means not found
        loose_min_similarity: Minimum rapidfuzz token_sort_ratio (0-100) a loose match must reach
    """

    loose_enabled: bool = True
    loose_max_candidates: int = 5
    loose_min_similarity: int = 60


@dataclass
class PreviewConfig:
    """Configuration for preview document synthesis.

    Attributes:
        site_name: Value for og:site_name
        site_url: Public base URL used when the request carries no host, and for the sitemap
        default_image: Image used when an article has none (relative or absolute)
        description_mode: "truncate" (collapsed body, cut to max chars) or "first_paragraph"
        description_max_chars: Maximum description length
        cache_max_age: Shared cache freshness window in seconds
        stale_while_revalidate: Window in seconds during which stale copies may be served
    """

    site_name: str = "Hourly Houston"
    site_url: str = "https://hourlyhouston.vercel.app"
    default_image: str = "/img/default-share.jpg"
    description_mode: str = "truncate"
    description_max_chars: int = 200
    cache_max_age: int = 60
    stale_while_revalidate: int = 120


@dataclass
class RoutingConfig:
    """Configuration for crawler-aware request routing.

    Attributes:
        interactive_path: Client-rendered article page
        preview_path: Server-rendered preview endpoint
        slug_prefixes: Path prefixes carrying a slug as the final segment
        rewrite: Rewrite requests internally; False falls back to a 307 redirect
        static_dir: Directory containing the interactive article.html (optional)
    """

    interactive_path: str = "/article.html"
    preview_path: str = "/api/preview"
    slug_prefixes: list[str] = field(default_factory=lambda: ["/articles/", "/article/"])
    rewrite: bool = True
    static_dir: str | None = None


@dataclass
class ListingConfig:
    """Configuration for the article listing API and sitemap.

    Attributes:
        per_page: Default grid page size
        max_per_page: Upper bound accepted for perPage
        cache_max_age: Listing shared cache freshness in seconds
        stale_while_revalidate: Listing stale-serve window in seconds
        sitemap_cache_max_age: Sitemap shared cache freshness in seconds
    """

    per_page: int = 6
    max_per_page: int = 50
    cache_max_age: int = 30
    stale_while_revalidate: int = 60
    sitemap_cache_max_age: int = 3600


@dataclass
class LoggingConfig:
    """Configuration for logging behavior.

    Attributes:
        level: Logging level ("DEBUG", "INFO", "WARNING", "ERROR")
        console: Whether to log to console
        file: Whether to log to file
        format: Log file format ("jsonl" or "plain")
        filename: Name of the main log file
        log_dir: Directory for the log file; file logging is skipped when unset
    """

    level: str = "INFO"
    console: bool = True
    file: bool = False
    format: str = "jsonl"
    filename: str = "server.jsonl"
    log_dir: str | None = None


@dataclass
class AppConfig:
    """Root configuration container aggregating all config sections."""

    store: StoreConfig = field(default_factory=StoreConfig)
    crawlers: CrawlerConfig = field(default_factory=CrawlerConfig)
    resolver: ResolverConfig = field(default_factory=ResolverConfig)
    preview: PreviewConfig = field(default_factory=PreviewConfig)
    routing: RoutingConfig = field(default_factory=RoutingConfig)
    listing: ListingConfig = field(default_factory=ListingConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


DEFAULT_CONFIG = AppConfig()


def load_config(path: str | None) -> AppConfig:
    """Load configuration from a YAML file with defaults."""
    if not path:
        return _apply_env(_fromdict(_asdict(DEFAULT_CONFIG)))

    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    return _apply_env(_merge_config(DEFAULT_CONFIG, raw))


def _merge_config(base: AppConfig, raw: dict[str, Any]) -> AppConfig:
    """Merge raw YAML config into base AppConfig."""
    data = _asdict(base)
    for key, value in raw.items():
        if key not in data:
            continue
        if isinstance(value, dict) and isinstance(data[key], dict):
            data[key].update({k: v for k, v in value.items() if k in data[key]})
        else:
            data[key] = value
    return _fromdict(data)


def _apply_env(cfg: AppConfig) -> AppConfig:
    """Apply environment overrides for database and collection names."""
    database = os.getenv("MONGODB_DB")
    if database:
        cfg.store.database = database
    collection = os.getenv("MONGODB_COLLECTION")
    if collection:
        cfg.store.collection = collection
    return cfg


def _asdict(cfg: AppConfig) -> dict[str, Any]:
    """Convert AppConfig to nested dictionary."""
    return {
        "store": {
            "uri": cfg.store.uri,
            "uri_env": cfg.store.uri_env,
            "database": cfg.store.database,
            "collection": cfg.store.collection,
            "server_selection_timeout_ms": cfg.store.server_selection_timeout_ms,
        },
        "crawlers": {
            "signatures": list(cfg.crawlers.signatures),
        },
        "resolver": {
            "loose_enabled": cfg.resolver.loose_enabled,
            "loose_max_candidates": cfg.resolver.loose_max_candidates,
            "loose_min_similarity": cfg.resolver.loose_min_similarity,
        },
        "preview": {
            "site_name": cfg.preview.site_name,
            "site_url": cfg.preview.site_url,
            "default_image": cfg.preview.default_image,
            "description_mode": cfg.preview.description_mode,
            "description_max_chars": cfg.preview.description_max_chars,
            "cache_max_age": cfg.preview.cache_max_age,
            "stale_while_revalidate": cfg.preview.stale_while_revalidate,
        },
        "routing": {
            "interactive_path": cfg.routing.interactive_path,
            "preview_path": cfg.routing.preview_path,
            "slug_prefixes": list(cfg.routing.slug_prefixes),
            "rewrite": cfg.routing.rewrite,
            "static_dir": cfg.routing.static_dir,
        },
        "listing": {
            "per_page": cfg.listing.per_page,
            "max_per_page": cfg.listing.max_per_page,
            "cache_max_age": cfg.listing.cache_max_age,
            "stale_while_revalidate": cfg.listing.stale_while_revalidate,
            "sitemap_cache_max_age": cfg.listing.sitemap_cache_max_age,
        },
        "logging": {
            "level": cfg.logging.level,
            "console": cfg.logging.console,
            "file": cfg.logging.file,
            "format": cfg.logging.format,
            "filename": cfg.logging.filename,
            "log_dir": cfg.logging.log_dir,
        },
    }


def _fromdict(data: dict[str, Any]) -> AppConfig:
    """Reconstruct AppConfig from nested dictionary."""
    return AppConfig(
        store=StoreConfig(**data["store"]),
        crawlers=CrawlerConfig(**data["crawlers"]),
        resolver=ResolverConfig(**data["resolver"]),
        preview=PreviewConfig(**data["preview"]),
        routing=RoutingConfig(**data["routing"]),
        listing=ListingConfig(**data["listing"]),
        logging=LoggingConfig(**data["logging"]),
    )


def get_store_uri(cfg: StoreConfig) -> str | None:
    """Get the store connection string from inline config or environment variable."""
    if cfg.uri:
        return cfg.uri
    return os.getenv(cfg.uri_env) or None
