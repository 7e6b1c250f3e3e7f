"""Settee - declarative CouchDB views and finders.

Usage:
    from settee import CouchDatabase, Model

    class Article(Model):
        database = CouchDatabase("blog")
        properties = ("title", "date", "tags")

    Article.view_by("date", descending=True)

    Article.by_date(limit=10)
    Article.find_by_title("Hello")
    Article.by_tags(reduce=True, group=True)
"""

from settee.collection import ViewCollection
from settee.context import ViewContext, get_default_context, reset_default_context
from settee.core.errors import (
    NoDatabaseError,
    NoSuchFinderError,
    RevisionConflictError,
    SetteeError,
    SyncConflictError,
    TransportError,
    TypeMismatchError,
    ViewNotFoundError,
)
from settee.core.models import Query, RawRow, ViewDefinition
from settee.design.cache import DesignDocumentCache
from settee.design.document import DesignDocument
from settee.model import Model
from settee.store.base import DocumentStore, design_id_for
from settee.store.couch import CouchDatabase
from settee.store.memory import MemoryDatabase

__all__ = [
    "CouchDatabase",
    "DesignDocument",
    "DesignDocumentCache",
    "DocumentStore",
    "MemoryDatabase",
    "Model",
    "NoDatabaseError",
    "NoSuchFinderError",
    "Query",
    "RawRow",
    "RevisionConflictError",
    "SetteeError",
    "SyncConflictError",
    "TransportError",
    "TypeMismatchError",
    "ViewCollection",
    "ViewContext",
    "ViewDefinition",
    "ViewNotFoundError",
    "design_id_for",
    "get_default_context",
    "reset_default_context",
]

__version__ = "0.1.0"
