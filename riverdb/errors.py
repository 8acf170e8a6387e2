"""
Error types for RiverDB.

This module defines all exception types raised by the library:
- RiverDbError: Base exception
- InvalidModelDefinition: Schema declaration problems (fatal, never retried)
- StorageError: Backing store problems (corrupt payloads, failed writes)
- RecordNotFoundError: A record's snapshot is no longer stored
- Registry errors: duplicate or late registrations

Invariants:
    - All errors inherit from RiverDbError
    - Errors include context for debugging
    - A foreign key that matches nothing is not an error (it yields no match)
"""

from __future__ import annotations

from difflib import get_close_matches
from typing import Any, Dict, Iterable, List, Optional


class RiverDbError(Exception):
    """Base exception for all RiverDB errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "RIVERDB_ERROR"
        self.details = details or {}


class InvalidModelDefinition(RiverDbError):
    """Model definition is invalid.

    Raised when:
    - Model or collection name is missing
    - Property or relationship names collide
    - A relationship references a model that is not registered
    """

    def __init__(self, message: str, model_name: Optional[str] = None) -> None:
        super().__init__(
            message,
            code="INVALID_MODEL_DEFINITION",
            details={"model_name": model_name},
        )
        self.model_name = model_name


class UnknownModelError(RiverDbError):
    """No model is registered under the requested name."""

    def __init__(self, model_name: str) -> None:
        super().__init__(
            f"Unknown model '{model_name}'",
            code="UNKNOWN_MODEL",
            details={"model_name": model_name},
        )
        self.model_name = model_name


class UnknownRelationshipError(RiverDbError, AttributeError):
    """Unknown relationship or property on a record.

    Includes suggestions for similar names. Subclasses AttributeError so that
    ``getattr(record, name, default)`` and ``hasattr`` keep working.

    Attributes:
        name: The unknown name
        model_name: The model being accessed
        suggestions: Similar declared names
    """

    def __init__(
        self,
        name: str,
        model_name: str,
        known: Iterable[str] = (),
    ) -> None:
        suggestions = get_close_matches(name, list(known), n=3)
        msg = f"Model '{model_name}' has no relationship or property '{name}'"
        if suggestions:
            msg += f". Did you mean: {', '.join(suggestions)}?"

        super().__init__(
            msg,
            code="UNKNOWN_RELATIONSHIP",
            details={
                "name": name,
                "model_name": model_name,
                "suggestions": suggestions,
            },
        )
        self.name = name
        self.model_name = model_name
        self.suggestions: List[str] = suggestions


class StorageError(RiverDbError):
    """Base class for backing store failures."""

    def __init__(self, message: str, key: Optional[str] = None, code: str = "STORAGE_ERROR") -> None:
        super().__init__(message, code=code, details={"key": key})
        self.key = key


class StorageCorruptError(StorageError):
    """Persisted payload is not a JSON mapping of client id to attributes.

    A missing entry is not corrupt; it is treated as an empty collection.
    """

    def __init__(self, message: str, key: Optional[str] = None) -> None:
        super().__init__(message, key=key, code="STORAGE_CORRUPT")


class StorageWriteError(StorageError):
    """Writing to the backing store failed.

    The in-memory state of the collection is left as it was before the
    attempted write, so the operation can be retried.
    """

    def __init__(self, message: str, key: Optional[str] = None) -> None:
        super().__init__(message, key=key, code="STORAGE_WRITE_FAILED")


class RecordNotFoundError(RiverDbError):
    """The record's snapshot does not exist in its collection."""

    def __init__(self, collection_name: str, client_id: str) -> None:
        super().__init__(
            f"No record '{client_id}' in collection '{collection_name}'",
            code="NOT_FOUND",
            details={"collection": collection_name, "client_id": client_id},
        )
        self.collection_name = collection_name
        self.client_id = client_id


class RegistryFrozenError(RiverDbError):
    """Registry is frozen and cannot be modified."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="REGISTRY_FROZEN")


class DuplicateRegistrationError(RiverDbError):
    """A model or collection with this name is already registered."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="DUPLICATE_REGISTRATION")
