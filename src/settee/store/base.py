"""Document store interface consumed by the view layer."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

DESIGN_PREFIX = "_design/"


def design_id_for(model_type: str) -> str:
    """Well-known design document id for a model type."""
    return f"{DESIGN_PREFIX}{model_type}"


def design_name(design_id: str) -> str:
    """Strip the ``_design/`` prefix from a design document id."""
    if design_id.startswith(DESIGN_PREFIX):
        return design_id[len(DESIGN_PREFIX):]
    return design_id


class DocumentStore(ABC):
    """A single database inside a CouchDB-style document store.

    The view layer reads design documents, writes them conditionally on
    their revision and runs view queries. ``save_doc`` and ``delete_doc``
    belong to the persistence side and are provided for callers and tests.
    """

    @property
    @abstractmethod
    def identity(self) -> str:
        """Stable identifier of this database, used as a cache key."""
        ...

    @abstractmethod
    def get_document(self, doc_id: str) -> dict[str, Any] | None:
        """Fetch a document by id. Returns None if it does not exist."""
        ...

    @abstractmethod
    def put_document(
        self,
        doc_id: str,
        body: dict[str, Any],
        revision: str | None = None,
    ) -> str:
        """Create or replace a document and return its new revision.

        Raises:
            RevisionConflictError: ``revision`` is not the current one.
            TransportError: the store could not be reached.
        """
        ...

    @abstractmethod
    def query_view(
        self,
        design_id: str,
        view_name: str,
        params: dict[str, Any],
    ) -> dict[str, Any]:
        """Run a view query and return the response envelope.

        The envelope holds ``rows`` and, for map queries, ``total_rows``
        and ``offset``.
        """
        ...

    @abstractmethod
    def save_doc(self, doc: dict[str, Any]) -> dict[str, Any]:
        """Save a document, assigning ``_id`` and ``_rev`` in place."""
        ...

    @abstractmethod
    def delete_doc(self, doc: dict[str, Any]) -> None:
        """Delete a document at its current revision."""
        ...

    def __repr__(self):
        return f"<{type(self).__name__} {self.identity}>"
