"""Query building: merge view defaults with caller options and resolve the database."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from settee.core.errors import NoDatabaseError
from settee.core.models import Query
from settee.store.base import DocumentStore
from settee.views.registry import ViewRegistry

logger = logging.getLogger(__name__)

# Parameters understood by the store's view endpoint.
VIEW_PARAMS = frozenset({
    "key",
    "keys",
    "startkey",
    "endkey",
    "startkey_docid",
    "endkey_docid",
    "limit",
    "skip",
    "descending",
    "reduce",
    "group",
    "group_level",
    "include_docs",
    "inclusive_end",
    "stale",
    "update_seq",
    "conflicts",
})
KEY_PARAMS = frozenset({"key", "startkey", "endkey"})

# Options that steer the client and never reach the store.
CONTROL_OPTIONS = frozenset({"raw", "database", "first"})


def _normalize_key(value: Any) -> Any:
    if isinstance(value, tuple):
        return [_normalize_key(v) for v in value]
    if isinstance(value, list):
        return [_normalize_key(v) for v in value]
    return value


class QueryBuilder:
    """Turns a view name plus caller options into a Query."""

    def __init__(self, registry: ViewRegistry):
        self.registry = registry

    def build(
        self,
        model_type: str,
        view_name: str,
        caller_options: Mapping[str, Any] | None = None,
        bound_database: DocumentStore | None = None,
    ) -> Query:
        """Build a query for ``view_name``.

        Caller options win over the view's defaults key by key. The caller's
        mapping is copied, never modified.

        Raises:
            ViewNotFoundError: the view is not declared.
            NoDatabaseError: neither ``database=`` nor a bound database.
        """
        definition = self.registry.lookup(model_type, view_name)

        options = dict(definition.default_options)
        options.update(caller_options or {})

        database = options.pop("database", None)
        if database is None:
            database = bound_database
        if database is None:
            raise NoDatabaseError(model_type)
        raw = bool(options.pop("raw", False))
        first = bool(options.pop("first", False))

        params: dict[str, Any] = {}
        for name, value in options.items():
            if name not in VIEW_PARAMS:
                logger.debug("Ignoring unknown view option %s=%r on %s/%s", name, value, model_type, view_name)
                continue
            if name in KEY_PARAMS:
                value = _normalize_key(value)
            elif name == "keys":
                value = [_normalize_key(k) for k in value]
            params[name] = value

        if definition.can_reduce:
            params["reduce"] = bool(params.get("reduce", False))
        elif "reduce" in params:
            if params["reduce"]:
                logger.debug("%s/%s has no reduce function; querying the map", model_type, view_name)
            del params["reduce"]

        # Materialization needs the embedded documents. Raw queries get the
        # same parameters so that raw only changes how the result is handled.
        if params.get("reduce"):
            params.pop("include_docs", None)
        else:
            params.pop("group", None)
            params.pop("group_level", None)
            params.setdefault("include_docs", True)

        if first:
            params["limit"] = 1

        return Query(
            model_type=model_type,
            view=definition,
            params=params,
            database=database,
            raw=raw,
            first=first,
        )
