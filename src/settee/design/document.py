"""Design documents: the server-side aggregate of a model type's views."""

from __future__ import annotations

import copy
import time
from dataclasses import dataclass, field
from typing import Any

from settee.store.base import design_id_for


@dataclass
class DesignDocument:
    """In-memory mirror of one model type's design document."""

    model_type: str
    views: dict[str, dict[str, str]] = field(default_factory=dict)
    remote_revision: str | None = None
    fetched_at: float = field(default_factory=time.monotonic)

    @property
    def design_id(self) -> str:
        return design_id_for(self.model_type)

    @property
    def persisted(self) -> bool:
        return self.remote_revision is not None

    @classmethod
    def from_stored(cls, model_type: str, stored: dict[str, Any] | None) -> DesignDocument:
        """Mirror a document fetched from the store; None means not yet created."""
        if stored is None:
            return cls(model_type=model_type)
        views = {
            name: {k: v for k, v in entry.items() if k in ("map", "reduce")}
            for name, entry in stored.get("views", {}).items()
        }
        return cls(model_type=model_type, views=views, remote_revision=stored.get("_rev"))

    def is_dirty(self, desired: dict[str, dict[str, str]]) -> bool:
        """True when ``desired`` differs from the views held here, by name or body."""
        return self.views != desired

    def reflects(self, view_name: str, entry: dict[str, str]) -> bool:
        """True when ``view_name`` is present here with exactly ``entry``."""
        return self.views.get(view_name) == entry

    def can_reduce(self, view_name: str) -> bool:
        return bool(self.views.get(view_name, {}).get("reduce"))

    def has_view(self, view_name: str) -> bool:
        return view_name in self.views

    def to_body(self) -> dict[str, Any]:
        """The body written to the store, without ``_id``/``_rev``."""
        return {"language": "javascript", "views": copy.deepcopy(self.views)}

    def to_dict(self) -> dict[str, Any]:
        body = self.to_body()
        body["_id"] = self.design_id
        if self.remote_revision is not None:
            body["_rev"] = self.remote_revision
        return body

    def replaced(self, views: dict[str, dict[str, str]], revision: str) -> DesignDocument:
        """A new mirror after a successful write of ``views``."""
        return DesignDocument(
            model_type=self.model_type,
            views=copy.deepcopy(views),
            remote_revision=revision,
        )
