"""View context: the registry, cache and query machinery shared by models.

Models bind to a context when their class is created. The default context
is process-wide; tests build a fresh one per case for isolation::

    context = ViewContext()

    class Article(Model, context=context):
        properties = ("title", "date")
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from settee.core.logging import ViewLogger
from settee.design.cache import DesignDocumentCache
from settee.dispatch import DynamicDispatcher
from settee.query.builder import QueryBuilder
from settee.query.executor import ViewExecutor
from settee.views.registry import ViewRegistry

if TYPE_CHECKING:
    from settee.config import Settings


class ViewContext:
    """Wires one registry, cache, builder, executor and dispatcher together."""

    def __init__(
        self,
        settings: "Settings | None" = None,
        view_logger: ViewLogger | None = None,
    ):
        if settings is None:
            from settee.config import get_settings

            settings = get_settings()
        self.settings = settings
        self.view_logger = view_logger or ViewLogger.from_settings(settings)
        self.registry = ViewRegistry()
        self.cache = DesignDocumentCache(self.registry, self.view_logger, settings)
        self.builder = QueryBuilder(self.registry)
        self.executor = ViewExecutor(self.cache, self.view_logger)
        self.dispatcher = DynamicDispatcher(self.registry, self.builder, self.executor)

    @property
    def type_key(self) -> str:
        return self.settings.model_type_key

    def close(self) -> None:
        self.view_logger.close()


_default_context: ViewContext | None = None


def get_default_context() -> ViewContext:
    """Get the process-wide context, creating it on first use."""
    global _default_context
    if _default_context is None:
        _default_context = ViewContext()
    return _default_context


def reset_default_context() -> None:
    """Drop the process-wide context (useful for testing)."""
    global _default_context
    if _default_context is not None:
        _default_context.close()
    _default_context = None
