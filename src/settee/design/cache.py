"""Design document cache: lazy, single-flight synchronization with the store.

One DesignDocument mirror is kept per (database, model type). A query that
needs a view the mirror does not reflect triggers a synchronization: the
full set of declared views is written as a replacement design document,
conditional on the last known revision. Concurrent callers for the same key
are serialized; the ones that lose the race find the mirror already current
and return without writing.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import TYPE_CHECKING

from settee.core.errors import RevisionConflictError, SyncConflictError
from settee.core.logging import ViewLogger
from settee.design.document import DesignDocument
from settee.store.base import DocumentStore, design_id_for
from settee.views.registry import ViewRegistry

if TYPE_CHECKING:
    from settee.config import Settings

logger = logging.getLogger(__name__)

CacheKey = tuple[str, str]

# A conflicting write is retried once after re-reading the server's copy.
MAX_WRITE_ATTEMPTS = 2


class DesignDocumentCache:
    """Per-process mirror of design documents, keyed by database and model type."""

    def __init__(
        self,
        registry: ViewRegistry,
        view_logger: ViewLogger | None = None,
        settings: "Settings | None" = None,
    ):
        if settings is None:
            from settee.config import get_settings

            settings = get_settings()
        self.registry = registry
        self.view_logger = view_logger or ViewLogger.from_settings(settings)
        self.auto_update = settings.auto_update_design_doc
        self.refresh_seconds = settings.design_refresh_seconds
        self._entries: dict[CacheKey, DesignDocument] = {}
        self._locks: dict[CacheKey, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @staticmethod
    def _key(model_type: str, database: DocumentStore) -> CacheKey:
        return (database.identity, model_type)

    def _lock_for(self, key: CacheKey) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    def _expired(self, document: DesignDocument) -> bool:
        if self.refresh_seconds <= 0:
            return False
        return time.monotonic() - document.fetched_at > self.refresh_seconds

    def _needs_sync(self, document: DesignDocument | None, model_type: str, view_name: str | None) -> bool:
        if document is None or self._expired(document):
            return True
        if not self.auto_update:
            return False
        if view_name is None:
            return document.is_dirty(self.registry.design_views(model_type))
        definition = self.registry.get(model_type, view_name)
        if definition is None:
            return False
        return not document.reflects(view_name, definition.design_entry())

    def fetch(self, model_type: str, database: DocumentStore) -> DesignDocument:
        """Read the design document from the store, bypassing the cache."""
        design_id = design_id_for(model_type)
        document = DesignDocument.from_stored(model_type, database.get_document(design_id))
        self.view_logger.design_fetched(model_type, design_id, document.remote_revision)
        return document

    def get(self, model_type: str, database: DocumentStore) -> DesignDocument | None:
        """The cached mirror, if any. Never touches the store."""
        return self._entries.get(self._key(model_type, database))

    def ensure_current(
        self,
        model_type: str,
        database: DocumentStore,
        view_name: str | None = None,
    ) -> DesignDocument:
        """Make sure the stored design document carries the declared views.

        With ``view_name`` the store is only written when that view is not
        yet reflected by the mirror. Without it any difference triggers a
        write.

        Raises:
            SyncConflictError: the write conflicted again after one retry.
            TransportError: the store could not be reached.
        """
        key = self._key(model_type, database)
        snapshot = self._entries.get(key)
        if not self._needs_sync(snapshot, model_type, view_name):
            return snapshot

        with self._lock_for(key):
            current = self._entries.get(key)
            if current is None or self._expired(current):
                current = self.fetch(model_type, database)
                self._entries[key] = current
            if not self.auto_update:
                return current
            desired = self.registry.design_views(model_type)
            if not current.is_dirty(desired):
                return current
            if view_name is not None and not self._needs_sync(current, model_type, view_name):
                return current
            return self._write(key, current, desired, database)

    def _write(
        self,
        key: CacheKey,
        current: DesignDocument,
        desired: dict[str, dict[str, str]],
        database: DocumentStore,
    ) -> DesignDocument:
        model_type = current.model_type
        design_id = current.design_id
        for attempt in range(MAX_WRITE_ATTEMPTS):
            body = DesignDocument(model_type=model_type, views=desired).to_body()
            try:
                revision = database.put_document(design_id, body, current.remote_revision)
            except RevisionConflictError:
                self.view_logger.design_conflict(model_type, design_id, current.remote_revision)
                logger.info("Design document %s conflicted (attempt %d)", design_id, attempt + 1)
                current = self.fetch(model_type, database)
                self._entries[key] = current
                if not current.is_dirty(desired):
                    return current
                continue

            updated = current.replaced(desired, revision)
            self._entries[key] = updated
            self.view_logger.design_written(model_type, design_id, revision, list(desired))
            logger.debug("Wrote %s at %s", design_id, revision)
            return updated

        raise SyncConflictError(
            f"{design_id} in {database.identity} kept conflicting after "
            f"{MAX_WRITE_ATTEMPTS} attempts"
        )

    def invalidate(self, model_type: str | None = None, database: DocumentStore | None = None) -> None:
        """Drop cached mirrors so the next use re-reads the store."""
        with self._locks_guard:
            for key in list(self._entries):
                identity, cached_type = key
                if model_type is not None and cached_type != model_type:
                    continue
                if database is not None and identity != database.identity:
                    continue
                del self._entries[key]
