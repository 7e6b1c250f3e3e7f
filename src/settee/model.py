"""Model base class: declarative views and finders on a document type.

Usage::

    class Article(Model):
        database = CouchDatabase("blog")
        properties = ("title", "date", "user_id", "tags")

    Article.view_by("date", descending=True)
    Article.view_by("user_id", "date")

    Article.by_date()                      # newest first
    Article.by_date(descending=False)
    Article.find_by_title("Hello")         # Article or None
    Article.find_by_user_id_and_date("bob", "2024-03-15")

Instances are plain dicts carrying the document, with attribute access to
declared properties. Property typing, persistence and timestamps are left
to the caller; this class only needs the discriminator to tell its own
documents from foreign ones.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import Any, ClassVar

from settee.collection import ViewCollection
from settee.context import ViewContext, get_default_context
from settee.core.errors import NoDatabaseError, TypeMismatchError
from settee.core.models import RawRow, ViewDefinition
from settee.design.document import DesignDocument
from settee.store.base import DocumentStore, design_id_for
from settee.views.registry import ALL_VIEW, generate_map_source, view_name_for


class ModelMeta(type):
    """Forwards unknown class attributes to the context's finder dispatcher."""

    def __getattr__(cls, name: str) -> Any:
        if name.startswith("_") or cls.__dict__.get("context") is None:
            raise AttributeError(f"type object {cls.__name__!r} has no attribute {name!r}")
        return cls.context.dispatcher.resolve(cls, name)


class Model(dict, metaclass=ModelMeta):
    """A document type with declared views."""

    model_type: ClassVar[str] = ""
    type_key: ClassVar[str] = "type"
    database: ClassVar[DocumentStore | None] = None
    properties: ClassVar[tuple[str, ...]] = ()
    context: ClassVar[ViewContext | None] = None

    def __init_subclass__(cls, context: ViewContext | None = None, model_type: str | None = None, **kwargs):
        super().__init_subclass__(**kwargs)
        inherited = None
        for base in cls.__mro__[1:]:
            if base.__dict__.get("context") is not None:
                inherited = base.__dict__["context"]
                break
        cls.context = context or inherited or get_default_context()
        cls.model_type = model_type or cls.__name__
        cls.type_key = cls.context.type_key
        cls.context.registry.ensure_all_view(cls.model_type, cls.type_key)

    def __init__(self, *args: Any, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.setdefault(self.type_key, self.model_type)

    def __getattr__(self, name: str) -> Any:
        if not name.startswith("_") and (name in self or name in self.property_names()):
            return self.get(name)
        raise AttributeError(f"{type(self).__name__!r} object has no attribute {name!r}")

    def __setattr__(self, name: str, value: Any) -> None:
        if name in self.property_names():
            self[name] = value
        else:
            super().__setattr__(name, value)

    def __repr__(self):
        return f"<{type(self).__name__} {dict.__repr__(self)}>"

    @property
    def id(self) -> str | None:
        return self.get("_id")

    @property
    def rev(self) -> str | None:
        return self.get("_rev")

    # -- Schema collaborator --

    @classmethod
    def property_names(cls) -> frozenset[str]:
        names: set[str] = set()
        for klass in cls.__mro__:
            names.update(klass.__dict__.get("properties", ()))
        return frozenset(names)

    @classmethod
    def matches(cls, doc: Any) -> bool:
        """True when ``doc`` carries this model's discriminator."""
        return isinstance(doc, dict) and doc.get(cls.type_key) == cls.model_type

    @classmethod
    def materialize(cls, doc: dict[str, Any]) -> Model:
        """Build an instance from a stored document.

        Raises:
            TypeMismatchError: the document belongs to another type.
        """
        if not cls.matches(doc):
            raise TypeMismatchError(
                f"document {doc.get('_id')!r} is not a {cls.model_type} "
                f"({cls.type_key}={doc.get(cls.type_key)!r})"
            )
        return cls(doc)

    # -- Declaration --

    @classmethod
    def view_by(cls, *keys: str, **options: Any) -> ViewDefinition:
        """Declare a view named ``by_<key>[_and_<key>...]``.

        Without ``map=`` the map function is generated to emit the listed
        properties as the key. ``reduce=`` supplies a reduce function,
        ``ducktype=True`` drops the type check, ``guards=`` adds JavaScript
        conditions. Remaining options become the view's default query options.
        The keys are recorded either way, so ``find_by_<keys>`` reuses the
        view. The store is not touched.
        """
        if not keys:
            raise TypeError("view_by() needs at least one key")
        map_source = options.pop("map", None)
        reduce_source = options.pop("reduce", None)
        ducktype = options.pop("ducktype", False)
        guards = options.pop("guards", ())
        name = view_name_for(keys)
        registry = cls.context.registry

        if map_source is None:
            map_source = generate_map_source(cls.model_type, keys, cls.type_key, ducktype=ducktype, guards=guards)
        return registry.declare(cls.model_type, name, map_source, reduce_source, options, keys=keys)

    @classmethod
    def provides_collection(cls, name: str, view_name: str, **options: Any) -> None:
        """Add a class method ``name`` returning a ViewCollection over ``view_name``.

        ``options`` are the collection's query options; keyword arguments
        to the generated method override them.
        """

        def collection(klass: type[Model], **overrides: Any) -> ViewCollection:
            merged = dict(options)
            merged.update(overrides)
            return ViewCollection(klass, view_name, merged)

        collection.__name__ = name
        setattr(cls, name, classmethod(collection))

    @classmethod
    def has_view(cls, name: str) -> bool:
        return cls.context.registry.has_view(cls.model_type, name)

    @classmethod
    def can_reduce_view(cls, name: str) -> bool:
        definition = cls.context.registry.get(cls.model_type, name)
        return definition is not None and definition.can_reduce

    # -- Queries --

    @classmethod
    def view(cls, name: str, callback: Callable[[RawRow], Any] | None = None, **options: Any) -> Any:
        """Query a declared view.

        Returns a list of instances (and RawRow for foreign documents), the
        raw envelope with ``raw=True``, aggregate RawRows with ``reduce=True``,
        or None when ``callback`` is given.
        """
        return cls.context.dispatcher.view(cls, name, callback, **options)

    @classmethod
    def first_from_view(cls, name: str, *args: Any, **options: Any) -> Any:
        return cls.context.dispatcher.first_from_view(cls, name, *args, **options)

    @classmethod
    def find_by(cls, keys: str | Iterable[str], *values: Any, **options: Any) -> Model | None:
        """Explicit form of ``find_by_<keys>``."""
        if isinstance(keys, str):
            keys = [keys]
        return cls.context.dispatcher.find_by(cls, list(keys), *values, **options)

    @classmethod
    def dispatch(cls, name: str, *args: Any, **options: Any) -> Any:
        """Call a finder by name, e.g. ``Article.dispatch("by_date", limit=2)``."""
        return cls.context.dispatcher.dispatch(cls, name, *args, **options)

    @classmethod
    def all(cls, **options: Any) -> list[Any]:
        return cls.view(ALL_VIEW, **options)

    @classmethod
    def first(cls, **options: Any) -> Model | None:
        return cls.first_from_view(ALL_VIEW, **options)

    @classmethod
    def last(cls, **options: Any) -> Model | None:
        options["descending"] = not options.get("descending", False)
        return cls.first_from_view(ALL_VIEW, **options)

    @classmethod
    def count(cls, **options: Any) -> int:
        options.pop("raw", None)
        options.pop("reduce", None)
        rows = cls.view(ALL_VIEW, reduce=True, **options)
        return rows[0].value if rows else 0

    # -- Design documents --

    @classmethod
    def _resolve_database(cls, database: DocumentStore | None) -> DocumentStore:
        if database is None:
            database = cls.database
        if database is None:
            raise NoDatabaseError(cls.model_type)
        return database

    @classmethod
    def design_doc(cls, database: DocumentStore | None = None) -> dict[str, Any]:
        """The design document as declared locally, with the cached revision if known."""
        if database is None:
            database = cls.database
        revision = None
        if database is not None:
            cached = cls.context.cache.get(cls.model_type, database)
            revision = cached.remote_revision if cached is not None else None
        document = DesignDocument(
            model_type=cls.model_type,
            views=cls.context.registry.design_views(cls.model_type),
            remote_revision=revision,
        )
        return document.to_dict()

    @classmethod
    def stored_design_doc(cls, database: DocumentStore | None = None) -> dict[str, Any] | None:
        """The design document as the store currently holds it."""
        return cls._resolve_database(database).get_document(design_id_for(cls.model_type))

    @classmethod
    def ensure_design_doc(cls, database: DocumentStore | None = None) -> DesignDocument:
        """Synchronize the design document now instead of on the next query."""
        return cls.context.cache.ensure_current(cls.model_type, cls._resolve_database(database))
