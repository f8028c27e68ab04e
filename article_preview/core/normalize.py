"""
Identifier normalization.

Turns a raw request identifier (a title, a slug, or a legacy querystring
fragment) into the ordered list of lookup candidates the resolver walks.
All functions here are pure.
"""

from __future__ import annotations

from dataclasses import dataclass
import re
from urllib.parse import parse_qs, unquote

from .types import LookupCandidate, Strategy


_HYPHEN_RUN_RE = re.compile(r"-+")
_TOKEN_SPLIT_RE = re.compile(r"[-\s]+")
_WHITESPACE_RE = re.compile(r"\s+")

TITLE_KEYS = ("title", "t")
SLUG_KEYS = ("slug",)


@dataclass(frozen=True)
class Identifier:
    """Raw identifier pulled from a request.

    Attributes:
        title: Explicit title, if supplied
        slug: Slug from a parameter or path segment, if supplied
    """
    title: str | None = None
    slug: str | None = None

    @property
    def is_empty(self) -> bool:
        return not _clean(self.title) and not slug_tokens(self.slug or "")


def collapse_whitespace(text: str) -> str:
    return _WHITESPACE_RE.sub(" ", text).strip()


def slug_to_title(slug: str) -> str:
    """Derive a title-like string from a slug.

    Examples:
        >>> slug_to_title("downtown--flood-update-2024")
        'downtown flood update 2024'
    """
    return collapse_whitespace(_HYPHEN_RUN_RE.sub(" ", slug))


def slug_tokens(slug: str) -> list[str]:
    """Split a slug on hyphen runs into non-empty lowercase tokens."""
    return [token.lower() for token in _TOKEN_SPLIT_RE.split(slug) if token]


def loose_pattern(tokens: tuple[str, ...] | list[str]) -> str:
    """Join pre-escaped tokens into an in-order, gap-tolerant pattern."""
    return ".*".join(tokens)


def build_candidates(title: str | None = None, slug: str | None = None) -> list[LookupCandidate]:
    """Build the ordered lookup candidates for an identifier.

    With a slug the chain is slug-exact, title-exact-from-slug and
    title-loose-from-slug, followed by title-exact when a title was also
    supplied. A title alone yields a single title-exact candidate. Empty or
    whitespace-only identifiers yield no candidates; callers treat that as a
    bad request.

    Loose-strategy tokens are escaped here so pattern metacharacters inside
    a slug can never widen the match.
    """
    candidates: list[LookupCandidate] = []

    slug = _clean(slug)
    tokens = slug_tokens(slug) if slug else []
    if slug and tokens:
        candidates.append(LookupCandidate(Strategy.SLUG_EXACT, slug))
        candidates.append(LookupCandidate(Strategy.TITLE_EXACT_FROM_SLUG, slug_to_title(slug)))
        escaped = tuple(re.escape(token) for token in tokens)
        candidates.append(
            LookupCandidate(Strategy.TITLE_LOOSE_FROM_SLUG, escaped, reference=" ".join(tokens))
        )

    title = _clean(title)
    if title:
        candidates.append(LookupCandidate(Strategy.TITLE_EXACT, title))

    return candidates


def identifier_from_query(raw_query: str) -> Identifier:
    """Extract an identifier from a legacy ``/article.html`` querystring.

    Structured ``title=``, ``t=`` or ``slug=`` keys win. Otherwise the whole
    fragment, percent-decoded, is taken as the title; a fragment that fails
    to decode is used as-is.
    """
    raw = raw_query.lstrip("?")
    if not raw:
        return Identifier()

    if "=" in raw:
        params = parse_qs(raw, keep_blank_values=True)
        title = _first(params, TITLE_KEYS)
        slug = _first(params, SLUG_KEYS)
        if title or slug:
            return Identifier(title=title, slug=slug)
        if any(key in params for key in TITLE_KEYS + SLUG_KEYS):
            # A known key with a blank value: nothing to look up.
            return Identifier()

    try:
        decoded = unquote(raw, errors="strict")
    except UnicodeDecodeError:
        decoded = raw
    return Identifier(title=decoded)


def _first(params: dict[str, list[str]], keys: tuple[str, ...]) -> str | None:
    for key in keys:
        for value in params.get(key, []):
            if value.strip():
                return value
    return None


def _clean(value: str | None) -> str:
    if value is None:
        return ""
    return value.strip()
