"""Document stores.

- MemoryDatabase: in-process, emulates views in Python (tests, local use)
- CouchDatabase: a CouchDB database over HTTP
"""

from settee.store.base import DocumentStore, design_id_for
from settee.store.couch import CouchDatabase
from settee.store.memory import MemoryDatabase

__all__ = [
    "CouchDatabase",
    "DocumentStore",
    "MemoryDatabase",
    "design_id_for",
]
