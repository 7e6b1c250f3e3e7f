"""Core data models for Settee."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from settee.store.base import DocumentStore


@dataclass(frozen=True)
class ViewDefinition:
    """Immutable declaration of a map/reduce view on a model type."""

    name: str
    map_source: str
    reduce_source: str | None = None
    default_options: Mapping[str, Any] = field(default_factory=dict, hash=False)
    keys: tuple[str, ...] = ()  # property names the view is keyed by, empty when not declared

    def __post_init__(self):
        object.__setattr__(self, "default_options", MappingProxyType(dict(self.default_options)))
        object.__setattr__(self, "keys", tuple(self.keys))

    @property
    def can_reduce(self) -> bool:
        return bool(self.reduce_source)

    def design_entry(self) -> dict[str, str]:
        """The ``views`` entry this definition contributes to a design document."""
        entry = {"map": self.map_source}
        if self.reduce_source:
            entry["reduce"] = self.reduce_source
        return entry


class RawRow(dict):
    """A view row handed back as-is rather than as a model instance."""

    def __repr__(self):
        if self.id is None:
            return f"<{type(self).__name__} key={self.key!r}, value={self.value!r}>"
        return f"<{type(self).__name__} id={self.id!r}, key={self.key!r}, value={self.value!r}>"

    @property
    def id(self) -> str | None:
        """Document ID of the row, ``None`` for reduce rows."""
        return self.get("id")

    @property
    def key(self) -> Any:
        return self.get("key")

    @property
    def value(self) -> Any:
        return self.get("value")

    @property
    def doc(self) -> dict | None:
        """The embedded document, present only with ``include_docs``."""
        return self.get("doc")


@dataclass
class Query:
    """A fully resolved view query, ready for execution."""

    model_type: str
    view: ViewDefinition
    params: dict[str, Any]
    database: DocumentStore
    raw: bool = False
    first: bool = False

    @property
    def view_name(self) -> str:
        return self.view.name

    @property
    def reduce(self) -> bool:
        return bool(self.params.get("reduce", False))
