"""View execution: run a built query and shape its rows into results."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, Protocol

from settee.core.logging import ViewLogger
from settee.core.models import Query, RawRow
from settee.design.cache import DesignDocumentCache
from settee.store.base import design_id_for

logger = logging.getLogger(__name__)


class Materializer(Protocol):
    """What the executor needs from the schema layer of a model type."""

    def matches(self, doc: Any) -> bool:
        """True when ``doc`` carries this model type's discriminator."""
        ...

    def materialize(self, doc: dict[str, Any]) -> Any:
        """Build a typed instance from a stored document."""
        ...


class ViewExecutor:
    """Issues view queries and materializes rows into model instances."""

    def __init__(self, cache: DesignDocumentCache, view_logger: ViewLogger | None = None):
        self.cache = cache
        self.view_logger = view_logger or cache.view_logger

    def fetch(self, query: Query) -> dict[str, Any]:
        """Bring the design document up to date, then return the raw envelope."""
        self.cache.ensure_current(query.model_type, query.database, query.view_name)
        envelope = query.database.query_view(
            design_id_for(query.model_type), query.view_name, query.params
        )
        self.view_logger.view_queried(
            query.model_type, query.view_name, query.params, len(envelope.get("rows", []))
        )
        return envelope

    def execute(
        self,
        query: Query,
        materializer: Materializer,
        each: Callable[[RawRow], Any] | None = None,
        typed_only: bool = False,
    ) -> Any:
        """Run ``query`` and return its result.

        - ``raw`` queries return the response envelope untouched.
        - reduce queries return the aggregate rows as RawRow.
        - otherwise each row becomes a model instance when its embedded
          document matches the model type, and stays a RawRow when not.

        With ``each`` the callback receives every row and nothing is
        returned. ``first`` queries return one result or None; with
        ``typed_only`` a first row that is not a model instance counts as
        not found.
        """
        envelope = self.fetch(query)
        rows = envelope.get("rows", [])

        if each is not None:
            for row in rows:
                each(RawRow(row))
            return None

        if query.raw:
            return envelope

        if query.reduce:
            results = [RawRow(row) for row in rows]
        else:
            results = [self._materialize_row(row, materializer) for row in rows]

        if not query.first:
            return results
        if not results:
            return None
        result = results[0]
        if typed_only and isinstance(result, RawRow):
            logger.debug("First row of %s/%s is not a %s", query.model_type, query.view_name, query.model_type)
            return None
        return result

    @staticmethod
    def _materialize_row(row: dict[str, Any], materializer: Materializer) -> Any:
        doc = row.get("doc")
        if doc is not None and materializer.matches(doc):
            return materializer.materialize(doc)
        return RawRow(row)
