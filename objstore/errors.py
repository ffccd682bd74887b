"""Structured exception hierarchy for object storage.

Provides specific exception types for the failure modes of the storage
contract, the factory registry and the name tables, with enough context
(backend, operation, path) to tell which call failed.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

__all__ = [
    "StorageError",
    "ObjectNotFoundError",
    "StorageIOError",
    "InvalidPathError",
    "ConfigurationError",
    "ConstructionError",
    "FactoryNotFoundError",
    "CapabilityUnavailableError",
    "DynamicURLUnavailableError",
    "AssetFSUnavailableError",
    "DuplicateAliasError",
]


class StorageError(Exception):
    """Base exception for all storage errors.

    Provides structured error information for debugging.
    """

    def __init__(
        self,
        message: str,
        *,
        storage: Optional[str] = None,
        operation: Optional[str] = None,
        path: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        suggestion: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        self.message = message
        self.storage = storage
        self.operation = operation
        self.path = path
        self.details = dict(details or {})
        self.suggestion = suggestion
        self.cause = cause

        if path is not None:
            self.details.setdefault("path", path)
        if cause is not None:
            self.details.setdefault("cause", str(cause))
            self.details.setdefault("cause_type", type(cause).__name__)

        parts = [message]

        if storage or operation:
            parts.insert(0, f"[{storage or '?'}:{operation or '?'}]")

        if self.details:
            parts.append("\nDetails:")
            parts.extend(f"  {k}: {v}" for k, v in self.details.items())

        if suggestion:
            parts.append(f"\nSuggestion: {suggestion}")

        super().__init__("\n".join(parts) if len(parts) > 1 else message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for structured logging."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "storage": self.storage,
            "operation": self.operation,
            "path": self.path,
            "details": self.details,
            "suggestion": self.suggestion,
        }


class ObjectNotFoundError(StorageError, FileNotFoundError):
    """The requested object does not exist.

    Raised by get() and delete(). stat() reports absence by returning None.
    """


class StorageIOError(StorageError):
    """Transport or disk failure while talking to a backend.

    Never retried internally.
    """


class InvalidPathError(StorageError, ValueError):
    """A path resolves outside the backend's root."""


class ConfigurationError(StorageError):
    """Error in storage configuration.

    Raised when a configuration file is malformed or references
    storages that were never defined.
    """

    def __init__(
        self,
        message: str,
        *,
        field: Optional[str] = None,
        value: Any = None,
        **kwargs: Any,
    ) -> None:
        self.field = field
        self.value = value

        details = kwargs.pop("details", None) or {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)

        super().__init__(message, details=details, **kwargs)


class ConstructionError(ConfigurationError):
    """A factory failed to build a backend from its configuration."""

    def __init__(
        self,
        message: str,
        *,
        type_name: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        self.type_name = type_name

        details = kwargs.pop("details", None) or {}
        if type_name:
            details["type"] = type_name

        kwargs.setdefault("operation", "construct")
        super().__init__(message, details=details, **kwargs)


class FactoryNotFoundError(ConstructionError):
    """No factory is registered for the requested backend type."""

    def __init__(
        self,
        type_name: str,
        *,
        available: Optional[List[str]] = None,
        **kwargs: Any,
    ) -> None:
        self.available = sorted(available or [])

        suggestion = kwargs.pop("suggestion", None)
        if not suggestion:
            suggestion = (
                f"Use one of: {', '.join(self.available)}"
                if self.available
                else "Register a factory with register_backend() first"
            )

        super().__init__(
            f"Storage backend type '{type_name}' is not registered",
            type_name=type_name,
            suggestion=suggestion,
            **kwargs,
        )


class CapabilityUnavailableError(StorageError):
    """A backend does not provide an optional capability.

    Callers can catch this to feature-detect instead of treating it as a
    generic failure.
    """

    capability = "capability"

    def __init__(self, message: Optional[str] = None, **kwargs: Any) -> None:
        super().__init__(message or f"{self.capability} unavailable", **kwargs)


class DynamicURLUnavailableError(CapabilityUnavailableError):
    """Backend cannot override scheme/host when building URLs."""

    capability = "dynamic url"


class AssetFSUnavailableError(CapabilityUnavailableError):
    """Backend cannot export a read-only asset filesystem."""

    capability = "asset fs"


class DuplicateAliasError(StorageError):
    """An alias was registered more than once."""

    def __init__(self, alias: str, *, real: Optional[str] = None, **kwargs: Any) -> None:
        self.alias = alias
        self.real = real

        details = kwargs.pop("details", None) or {}
        if real is not None:
            details["registered_for"] = real

        super().__init__(f'Alias "{alias}" has been duplicated', details=details, **kwargs)
