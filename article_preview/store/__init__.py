"""
Article document store.

The store is an external collaborator: this package only reads from it.
"""

from .base import ArticleStore
from .mongo import MongoArticleStore, StoreHandle

__all__ = ["ArticleStore", "MongoArticleStore", "StoreHandle"]
