"""
Core domain models and resolution logic.

This package contains the data types, identifier normalization and the
article resolver, independent of the HTTP layer.
"""

from .types import ArticleRecord, LookupCandidate, PreviewDocument, ResolutionResult, Strategy
from .normalize import Identifier, build_candidates, identifier_from_query, slug_to_title, slug_tokens

__all__ = [
    "ArticleRecord",
    "LookupCandidate",
    "PreviewDocument",
    "ResolutionResult",
    "Strategy",
    "Identifier",
    "build_candidates",
    "identifier_from_query",
    "slug_to_title",
    "slug_tokens",
]
