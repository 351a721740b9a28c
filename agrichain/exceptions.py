# -*- coding: utf-8 -*-
"""AgriChain Exception Hierarchy.

Every failure raised by the ledger carries the entity kind and identifier
it concerns, so callers can diagnose a rejected invocation without
re-reading world state.

Exception Hierarchy:
    AgriChainException (base)
    ├── ValidationError      malformed input or corrupted stored payload
    ├── ConflictError        duplicate creation of a unique id
    │   └── StaleStateError  conditional write lost to a concurrent commit
    ├── NotFoundError        read of an absent key
    ├── QueryError           selector query failed or is unsupported
    └── StoreError           backend I/O failure

Example:
    >>> from agrichain.exceptions import NotFoundError
    >>> raise NotFoundError(
    ...     message="product P1 does not exist",
    ...     entity_kind="product",
    ...     entity_id="P1",
    ... )

Author: AgriChain Platform Team
Status: Production Ready
"""

from __future__ import annotations

import json
import re
import traceback as tb
from datetime import datetime, timezone
from typing import Any, Dict, Optional


# ==============================================================================
# Base Exception
# ==============================================================================


class AgriChainException(Exception):
    """Base exception for all AgriChain ledger errors.

    Attributes:
        message: Human-readable error message.
        error_code: Unique error identifier (e.g. "AGRI_NOT_FOUND_ERROR").
        entity_kind: Kind of entity involved (product, farmer, certificate).
        entity_id: Identifier of the entity involved.
        context: Dictionary with error-specific details.
        timestamp: When the error occurred (UTC).
        traceback_str: Stack at the point of construction.
    """

    ERROR_PREFIX = "AGRI"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        entity_kind: Optional[str] = None,
        entity_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        """Initialize the exception with rich context.

        Args:
            message: Human-readable error message.
            error_code: Unique error identifier (auto-generated if omitted).
            entity_kind: Kind of entity involved.
            entity_id: Identifier of the entity involved.
            context: Dictionary with error-specific details.
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self._generate_error_code()
        self.entity_kind = entity_kind
        self.entity_id = entity_id
        self.context = context or {}
        self.timestamp = datetime.now(timezone.utc)
        self.traceback_str = "".join(tb.format_stack()[:-1])

    def _generate_error_code(self) -> str:
        """Generate an error code from the class name.

        Returns:
            Error code like "AGRI_CONFLICT_ERROR".
        """
        error_type = re.sub(r"(?<!^)(?=[A-Z])", "_", self.__class__.__name__).upper()
        return f"{self.ERROR_PREFIX}_{error_type}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for serialization.

        Returns:
            Dictionary with all error details.
        """
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "entity_kind": self.entity_kind,
            "entity_id": self.entity_id,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }

    def to_json(self) -> str:
        """Convert exception to JSON string."""
        return json.dumps(self.to_dict(), indent=2, default=str)

    def __str__(self) -> str:
        parts = [f"[{self.error_code}]"]
        if self.entity_kind:
            if self.entity_id is not None:
                parts.append(f"{self.entity_kind} {self.entity_id}")
            else:
                parts.append(self.entity_kind)
        parts.append(self.message)
        return " - ".join(parts)

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message='{self.message}', "
            f"error_code='{self.error_code}', "
            f"entity_kind='{self.entity_kind}', "
            f"entity_id='{self.entity_id}')"
        )


# ==============================================================================
# Ledger Exceptions
# ==============================================================================


class ValidationError(AgriChainException):
    """Input could not be parsed or a stored payload is corrupted.

    Example:
        >>> raise ValidationError(
        ...     message="failed to parse product data",
        ...     entity_kind="product",
        ...     invalid_fields={"status": "unknown value 'ROTTEN'"},
        ... )
    """

    def __init__(
        self,
        message: str,
        entity_kind: Optional[str] = None,
        entity_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        invalid_fields: Optional[Dict[str, str]] = None,
    ):
        """Initialize validation error.

        Args:
            message: Error message.
            entity_kind: Kind of entity being parsed.
            entity_id: Identifier, when known.
            context: Error context.
            invalid_fields: Mapping of field name to reason.
        """
        if invalid_fields:
            context = context or {}
            context["invalid_fields"] = invalid_fields
        super().__init__(
            message,
            entity_kind=entity_kind,
            entity_id=entity_id,
            context=context,
        )


class ConflictError(AgriChainException):
    """An id that must be unique is already present in world state."""


class StaleStateError(ConflictError):
    """A conditional write was rejected because the record changed.

    Raised when the version read at the start of an operation no longer
    matches the stored version at write time. The operation committed
    nothing and may be retried by the caller.
    """

    def __init__(
        self,
        message: str,
        entity_kind: Optional[str] = None,
        entity_id: Optional[str] = None,
        expected_version: Optional[int] = None,
        actual_version: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        context = context or {}
        if expected_version is not None:
            context["expected_version"] = expected_version
        if actual_version is not None:
            context["actual_version"] = actual_version
        super().__init__(
            message,
            entity_kind=entity_kind,
            entity_id=entity_id,
            context=context,
        )


class NotFoundError(AgriChainException):
    """The requested key is absent from world state."""


class QueryError(AgriChainException):
    """A selector query failed or the backend cannot evaluate it."""

    def __init__(
        self,
        message: str,
        selector: Optional[Dict[str, Any]] = None,
        entity_kind: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        context = context or {}
        if selector is not None:
            context["selector"] = selector
        super().__init__(message, entity_kind=entity_kind, context=context)


class StoreError(AgriChainException):
    """The world-state backend failed.

    The original backend exception is chained as ``__cause__`` and
    summarised in the context.
    """

    def __init__(
        self,
        message: str,
        key: Optional[str] = None,
        operation: Optional[str] = None,
        cause: Optional[BaseException] = None,
        entity_kind: Optional[str] = None,
        entity_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        """Initialize store error.

        Args:
            message: Error message.
            key: World-state key involved.
            operation: Operation that failed (get, put, query, range).
            cause: Original backend exception.
            entity_kind: Kind of entity involved.
            entity_id: Identifier of the entity involved.
            context: Error context.
        """
        context = context or {}
        if key is not None:
            context["key"] = key
        if operation:
            context["operation"] = operation
        if cause is not None:
            context["cause"] = str(cause)
            context["cause_type"] = type(cause).__name__
        super().__init__(
            message,
            entity_kind=entity_kind,
            entity_id=entity_id,
            context=context,
        )


# ==============================================================================
# Utilities
# ==============================================================================


def format_exception_chain(exc: BaseException) -> str:
    """Format an exception and its causes for logging.

    Args:
        exc: Exception to format.

    Returns:
        Multi-line string with the full cause chain.
    """
    lines = []
    current: Optional[BaseException] = exc

    while current is not None:
        if isinstance(current, AgriChainException):
            lines.append(str(current))
            lines.append(f"  Context: {current.context}")
        else:
            lines.append(f"{type(current).__name__}: {current}")
        current = current.__cause__

    return "\n".join(lines)


def is_retriable(exc: BaseException) -> bool:
    """Check whether the caller's transaction runtime may retry.

    The ledger never retries internally.

    Args:
        exc: Exception to check.

    Returns:
        True for stale-version conflicts and backend failures.
    """
    return isinstance(exc, (StaleStateError, StoreError))


__all__ = [
    "AgriChainException",
    "ValidationError",
    "ConflictError",
    "StaleStateError",
    "NotFoundError",
    "QueryError",
    "StoreError",
    "format_exception_chain",
    "is_retriable",
]
