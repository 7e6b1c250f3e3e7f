"""Paginated collections over a view.

A model exposes a named collection with ``provides_collection``::

    Article.provides_collection("article_details", "by_date", descending=True)

    details = Article.article_details()
    details.paginate(page=2, per_page=10)
    details.total_count()
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from settee.model import Model

DEFAULT_PER_PAGE = 30


class ViewCollection:
    """A view query with fixed options, read one page at a time."""

    def __init__(self, model: type[Model], view_name: str, options: dict[str, Any] | None = None):
        self.model = model
        self.view_name = view_name
        self.options = dict(options or {})

    def __repr__(self):
        return f"<{type(self).__name__} {self.model.model_type}/{self.view_name} {self.options!r}>"

    def _query(self, **overrides: Any) -> Any:
        options = dict(self.options)
        options.update(overrides)
        return self.model.view(self.view_name, **options)

    def all(self) -> list[Any]:
        return self._query()

    def __iter__(self) -> Iterator[Any]:
        return iter(self.all())

    def paginate(self, page: int = 1, per_page: int = DEFAULT_PER_PAGE) -> list[Any]:
        """Results of page ``page`` (1-based)."""
        if page < 1 or per_page < 1:
            raise ValueError(f"page and per_page must be positive, got page={page}, per_page={per_page}")
        return self._query(skip=(page - 1) * per_page, limit=per_page)

    def paginated_each(self, callback: Callable[[Any], Any], per_page: int = DEFAULT_PER_PAGE) -> None:
        """Call ``callback`` on every result, fetching ``per_page`` at a time."""
        page = 1
        while True:
            results = self.paginate(page, per_page)
            for result in results:
                callback(result)
            if len(results) < per_page:
                return
            page += 1

    def total_count(self) -> int:
        """Rows in the view, ignoring paging and key ranges."""
        envelope = self._query(raw=True, limit=0, reduce=False)
        return envelope.get("total_rows", 0)
