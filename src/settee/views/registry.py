"""View registry: declared and synthesized view definitions per model type.

Declaring a view only records it here. Nothing reaches the store until a
query needs the view, at which point the design document cache compares
the registry against what the server holds.
"""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Iterable, Mapping
from typing import Any

from settee.core.errors import ViewNotFoundError
from settee.core.models import ViewDefinition

logger = logging.getLogger(__name__)

ALL_VIEW = "all"
COUNT_REDUCE = "_count"


def view_name_for(keys: Iterable[str]) -> str:
    """Name of the generated view over ``keys``, in call order."""
    return "by_" + "_and_".join(keys)


def _js(value: str) -> str:
    return json.dumps(value)


def type_condition(model_type: str, type_key: str) -> str:
    return f"doc[{_js(type_key)}] == {_js(model_type)}"


def generate_map_source(
    model_type: str,
    keys: Iterable[str],
    type_key: str,
    ducktype: bool = False,
    guards: Iterable[str] = (),
) -> str:
    """Generate the map function for a view keyed by document properties.

    The key is the single property value, or an array of the values in the
    given order. Documents missing any of the properties are skipped, and
    unless ``ducktype`` is set so are documents of another model type.
    """
    keys = list(keys)
    if not keys:
        raise ValueError("a generated view needs at least one key")

    conditions = [] if ducktype else [type_condition(model_type, type_key)]
    conditions.extend(f"doc[{_js(k)}] != null" for k in keys)
    conditions.extend(guards)

    if len(keys) == 1:
        emitted = f"doc[{_js(keys[0])}]"
    else:
        emitted = "[" + ", ".join(f"doc[{_js(k)}]" for k in keys) + "]"

    condition = " && ".join(f"({c})" for c in conditions)
    return (
        "function(doc) {\n"
        f"  if ({condition}) {{\n"
        f"    emit({emitted}, null);\n"
        "  }\n"
        "}"
    )


def generate_all_source(model_type: str, type_key: str) -> str:
    """Map function for the implicit ``all`` view, keyed by document id."""
    return (
        "function(doc) {\n"
        f"  if (({type_condition(model_type, type_key)})) {{\n"
        f"    emit(doc[{_js('_id')}], null);\n"
        "  }\n"
        "}"
    )


class ViewRegistry:
    """Thread-safe registry of ViewDefinitions keyed by model type and name."""

    def __init__(self):
        self._views: dict[str, dict[str, ViewDefinition]] = {}
        self._lock = threading.RLock()

    def declare(
        self,
        model_type: str,
        name: str,
        map_source: str,
        reduce_source: str | None = None,
        default_options: Mapping[str, Any] | None = None,
        keys: Iterable[str] = (),
    ) -> ViewDefinition:
        """Register or replace a view definition. Never touches the store."""
        definition = ViewDefinition(
            name=name,
            map_source=map_source,
            reduce_source=reduce_source,
            default_options=default_options or {},
            keys=tuple(keys),
        )
        with self._lock:
            views = self._views.setdefault(model_type, {})
            if name in views and views[name] != definition:
                logger.debug("Replacing view %s/%s", model_type, name)
            views[name] = definition
        return definition

    def synthesize(
        self,
        model_type: str,
        keys: Iterable[str],
        type_key: str,
        ducktype: bool = False,
        guards: Iterable[str] = (),
        default_options: Mapping[str, Any] | None = None,
    ) -> ViewDefinition:
        """Declare the generated view over ``keys`` and return it."""
        keys = tuple(keys)
        name = view_name_for(keys)
        source = generate_map_source(model_type, keys, type_key, ducktype=ducktype, guards=guards)
        logger.debug("Synthesizing view %s/%s over %s", model_type, name, list(keys))
        return self.declare(model_type, name, source, default_options=default_options, keys=keys)

    def ensure_all_view(self, model_type: str, type_key: str) -> ViewDefinition:
        """Declare the implicit ``all`` view unless the model already has one."""
        with self._lock:
            existing = self.get(model_type, ALL_VIEW)
            if existing is not None:
                return existing
            return self.declare(
                model_type,
                ALL_VIEW,
                generate_all_source(model_type, type_key),
                reduce_source=COUNT_REDUCE,
            )

    def get(self, model_type: str, name: str) -> ViewDefinition | None:
        with self._lock:
            return self._views.get(model_type, {}).get(name)

    def lookup(self, model_type: str, name: str) -> ViewDefinition:
        """Return the definition or raise ViewNotFoundError."""
        definition = self.get(model_type, name)
        if definition is None:
            raise ViewNotFoundError(model_type, name)
        return definition

    def has_view(self, model_type: str, name: str) -> bool:
        return self.get(model_type, name) is not None

    def views_for(self, model_type: str) -> dict[str, ViewDefinition]:
        """Snapshot of every definition registered for ``model_type``."""
        with self._lock:
            return dict(self._views.get(model_type, {}))

    def design_views(self, model_type: str) -> dict[str, dict[str, str]]:
        """The ``views`` mapping a design document for ``model_type`` should hold."""
        return {name: d.design_entry() for name, d in self.views_for(model_type).items()}

    def clear(self, model_type: str | None = None) -> None:
        """Forget definitions for one model type, or all of them."""
        with self._lock:
            if model_type is None:
                self._views.clear()
            else:
                self._views.pop(model_type, None)
