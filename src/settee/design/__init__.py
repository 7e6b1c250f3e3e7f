"""Design documents and their per-process cache."""

from settee.design.cache import DesignDocumentCache
from settee.design.document import DesignDocument

__all__ = [
    "DesignDocument",
    "DesignDocumentCache",
]
