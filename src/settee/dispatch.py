"""Finder dispatch: resolve ``by_*`` / ``find_by_*`` names to view queries.

Resolution is a registry lookup: a declared view name resolves to a view
query, a ``find_by_<prop>[_and_<prop>...]`` name resolves to a first-match
query on the view over those properties (synthesized on first use), and
anything else is a NoSuchFinderError.
"""

from __future__ import annotations

import functools
import logging
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING, Any

from settee.core.errors import NoSuchFinderError
from settee.core.models import RawRow, ViewDefinition
from settee.query.builder import QueryBuilder
from settee.query.executor import ViewExecutor
from settee.views.registry import ViewRegistry, view_name_for

if TYPE_CHECKING:
    from settee.model import Model

logger = logging.getLogger(__name__)

FIND_PREFIX = "find_by_"
KEY_SEPARATOR = "_and_"


def parse_finder(name: str) -> list[str] | None:
    """Property names of a ``find_by_*`` finder, in call order, or None."""
    if not name.startswith(FIND_PREFIX) or len(name) == len(FIND_PREFIX):
        return None
    keys = name[len(FIND_PREFIX):].split(KEY_SEPARATOR)
    if any(not key for key in keys):
        return None
    return keys


def finder_key(keys: Sequence[str], values: Sequence[Any]) -> Any:
    """The view key for finder arguments.

    A single-property finder takes one value. A compound finder takes either
    one value per property or a single list/tuple holding them all.
    """
    if len(values) == 1 and len(keys) == 1:
        return values[0]
    if len(values) == 1 and isinstance(values[0], (list, tuple)):
        values = values[0]
    if len(values) != len(keys):
        raise TypeError(f"finder over {list(keys)} expects {len(keys)} values, got {len(values)}")
    return list(values)


class DynamicDispatcher:
    """Routes finder-style calls on a model class to view queries."""

    def __init__(self, registry: ViewRegistry, builder: QueryBuilder, executor: ViewExecutor):
        self.registry = registry
        self.builder = builder
        self.executor = executor

    # -- Operations --

    def view(
        self,
        model: type[Model],
        view_name: str,
        callback: Callable[[RawRow], Any] | None = None,
        **options: Any,
    ) -> Any:
        """Query a declared view; see ViewExecutor.execute for result shapes."""
        query = self.builder.build(model.model_type, view_name, options, model.database)
        return self.executor.execute(query, model, each=callback)

    def first_from_view(self, model: type[Model], view_name: str, *args: Any, **options: Any) -> Any:
        """First result of a view, or None.

        A positional argument is the key; several positional arguments form a
        compound key.
        """
        if args:
            options["key"] = args[0] if len(args) == 1 else list(args)
        options["first"] = True
        query = self.builder.build(model.model_type, view_name, options, model.database)
        return self.executor.execute(query, model)

    def find_by(self, model: type[Model], keys: Sequence[str], *values: Any, **options: Any) -> Any:
        """First instance whose properties ``keys`` equal ``values``, or None."""
        definition = self.finder_view(model, keys)
        options["key"] = finder_key(keys, values)
        options["first"] = True
        query = self.builder.build(model.model_type, definition.name, options, model.database)
        return self.executor.execute(query, model, typed_only=True)

    # -- Resolution --

    def check_finder(self, model: type[Model], keys: Sequence[str]) -> ViewDefinition | None:
        """The declared view over ``keys``, or None when it is still to be synthesized.

        Raises:
            NoSuchFinderError: a property is unknown to the model, or a view
                of the same name is declared with a different key shape.
        """
        keys = tuple(keys)
        name = view_name_for(keys)
        finder = FIND_PREFIX + KEY_SEPARATOR.join(keys)
        known = model.property_names()
        if known:
            unknown = [k for k in keys if k not in known]
            if unknown:
                raise NoSuchFinderError(model.model_type, finder, f"unknown properties {unknown}")

        definition = self.registry.get(model.model_type, name)
        if definition is not None and definition.keys != keys:
            raise NoSuchFinderError(
                model.model_type,
                finder,
                f"view {name!r} is declared with keys {list(definition.keys)}",
            )
        return definition

    def finder_view(self, model: type[Model], keys: Sequence[str]) -> ViewDefinition:
        """The view over ``keys``, synthesized when it is not declared yet."""
        definition = self.check_finder(model, keys)
        if definition is None:
            definition = self.registry.synthesize(model.model_type, keys, model.type_key)
        return definition

    def resolve(self, model: type[Model], name: str) -> Callable[..., Any]:
        """Bind ``name`` to a callable, or raise NoSuchFinderError.

        Resolution only validates; a finder's view is synthesized when the
        returned callable runs.
        """
        if self.registry.has_view(model.model_type, name):
            return functools.partial(self.view, model, name)

        keys = parse_finder(name)
        if keys is not None:
            self.check_finder(model, keys)
            return functools.partial(self.find_by, model, keys)

        raise NoSuchFinderError(model.model_type, name)

    def dispatch(self, model: type[Model], name: str, *args: Any, **options: Any) -> Any:
        """Resolve ``name`` and call it."""
        logger.debug("Dispatching %s.%s", model.model_type, name)
        return self.resolve(model, name)(*args, **options)
