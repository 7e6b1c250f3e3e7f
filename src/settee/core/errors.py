"""Settee error types."""

from __future__ import annotations


class SetteeError(Exception):
    """Base exception for Settee."""

    pass


class NoDatabaseError(SetteeError):
    """A view query had no database to run against."""

    def __init__(self, model_type: str):
        self.model_type = model_type
        super().__init__(
            f"No database bound to {model_type}; pass database= or set {model_type}.database"
        )


class NoSuchFinderError(SetteeError, AttributeError):
    """A finder name resolved to neither a declared view nor a finder pattern."""

    def __init__(self, model_type: str, name: str, reason: str | None = None):
        message = f"{model_type} has no finder {name!r}"
        if reason:
            message = f"{message}: {reason}"
        # AttributeError.__init__ resets .name.
        super().__init__(message)
        self.model_type = model_type
        self.name = name
        self.reason = reason


class ViewNotFoundError(SetteeError, KeyError):
    """A view name is not registered for a model type."""

    def __init__(self, model_type: str, name: str):
        self.model_type = model_type
        self.name = name
        super().__init__(f"{model_type} has no view {name!r}")

    def __str__(self) -> str:
        return str(self.args[0])


class RevisionConflictError(SetteeError):
    """The store rejected a write because the revision was stale."""

    def __init__(self, doc_id: str, revision: str | None = None):
        self.doc_id = doc_id
        self.revision = revision
        super().__init__(f"Revision conflict writing {doc_id} (rev={revision})")


class SyncConflictError(SetteeError):
    """A design document write kept conflicting after the retry."""

    pass


class TransportError(SetteeError):
    """The store was unreachable or answered with an unexpected status."""

    def __init__(self, message: str, status: int | None = None):
        self.status = status
        super().__init__(message)


class TypeMismatchError(SetteeError):
    """A document does not carry the discriminator of the expected model type."""

    pass
