# -*- coding: utf-8 -*-
"""
AgriChain World State - backend contract and typed accessor.

The ledger talks to world state through two layers:

    WorldStateStore     abstract key-value backend: versioned get/put,
                        range and prefix scans and (optionally) selector queries.
    WorldStateAccessor  typed wrapper used by the engines: encodes records
                        to canonical JSON, decodes them back, and turns
                        "absent" into an explicit StateRead.found=False.

Concurrency contract:
    Every stored value carries a version that starts at 1 and increases
    by one per write. ``put_state(key, value, expected_version)`` is a
    conditional write:

        expected_version=None  unconditional (overwrite or create)
        expected_version=0     key must be absent
        expected_version=n      stored version must equal n

    A failed condition raises StaleStateError and writes nothing. This is
    what keeps step ordinals collision-free when two invocations touch
    the same product concurrently.

Example:
    >>> from agrichain.backends.memory import MemoryWorldState
    >>> accessor = WorldStateAccessor(MemoryWorldState(), KeyCodec())
    >>> accessor.exists("product:P1")
    False
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import (
    Any,
    Dict,
    Generic,
    Iterator,
    List,
    Optional,
    Sequence,
    Type,
    TypeVar,
    Union,
)

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from agrichain.exceptions import QueryError, StaleStateError, ValidationError
from agrichain.keys import KeyCodec
from agrichain.models import EntityKind

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


# =============================================================================
# Backend value types
# =============================================================================


@dataclass(frozen=True)
class VersionedValue:
    """A stored payload together with its write version."""

    value: bytes
    version: int


@dataclass(frozen=True)
class KV:
    """One (key, value) pair produced by a range scan or query."""

    key: str
    value: bytes


class StateQueryIterator(ABC):
    """Iterator over query/range results with explicit release.

    ``close()`` must be called on every exit path; the iterator is a
    context manager so ``with`` blocks guarantee it.
    """

    @abstractmethod
    def has_next(self) -> bool:
        """Return True if another result is available."""

    @abstractmethod
    def next(self) -> KV:
        """Return the next result.

        Raises:
            StopIteration: If the iterator is exhausted.
        """

    @abstractmethod
    def close(self) -> None:
        """Release backend resources held by the iterator."""

    def __enter__(self) -> StateQueryIterator:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __iter__(self) -> Iterator[KV]:
        while self.has_next():
            yield self.next()


class ListStateQueryIterator(StateQueryIterator):
    """StateQueryIterator over an already materialized result list."""

    def __init__(self, results: Sequence[KV]) -> None:
        self._results = list(results)
        self._pos = 0
        self.closed = False

    def has_next(self) -> bool:
        return not self.closed and self._pos < len(self._results)

    def next(self) -> KV:
        if not self.has_next():
            raise StopIteration
        item = self._results[self._pos]
        self._pos += 1
        return item

    def close(self) -> None:
        self.closed = True
        self._results = []


# =============================================================================
# Backend contract
# =============================================================================


class WorldStateStore(ABC):
    """Abstract versioned key-value world-state backend."""

    #: Whether get_query_result() evaluates selectors natively.
    supports_rich_query: bool = False

    @abstractmethod
    def get_state(self, key: str) -> Optional[VersionedValue]:
        """Return the stored value for key, or None when absent.

        Raises:
            StoreError: On backend failure.
        """

    @abstractmethod
    def put_state(
        self,
        key: str,
        value: bytes,
        expected_version: Optional[int] = None,
    ) -> int:
        """Write value under key, optionally conditional on its version.

        Returns:
            The new version of the key.

        Raises:
            StaleStateError: If expected_version does not hold.
            StoreError: On backend failure.
        """

    @abstractmethod
    def get_state_by_range(self, start_key: str, end_key: str) -> StateQueryIterator:
        """Iterate keys in [start_key, end_key) in key order.

        Empty bounds are unbounded on that side.
        """

    @abstractmethod
    def get_state_by_prefix(self, prefix: str) -> StateQueryIterator:
        """Iterate keys starting with prefix in key order.

        An empty prefix matches every key.
        """

    def get_query_result(self, selector: Dict[str, Any]) -> StateQueryIterator:
        """Evaluate a selector query natively.

        Raises:
            QueryError: If the backend has no rich-query capability.
        """
        raise QueryError(
            message=f"{type(self).__name__} does not support selector queries",
            selector=selector,
        )

    def close(self) -> None:
        """Release backend resources."""

    def stale(
        self,
        key: str,
        expected_version: int,
        actual_version: int,
    ) -> StaleStateError:
        """Build the StaleStateError for a failed conditional write."""
        if expected_version == 0:
            message = f"key {key} already exists"
        else:
            message = (
                f"key {key} changed since it was read "
                f"(expected version {expected_version}, found {actual_version})"
            )
        return StaleStateError(
            message=message,
            expected_version=expected_version,
            actual_version=actual_version,
            context={"key": key},
        )


# =============================================================================
# Selector evaluation
# =============================================================================


def _lookup(doc: Any, path: str) -> Any:
    current = doc
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return _MISSING
        current = current[part]
    return current


class _Missing:
    def __repr__(self) -> str:
        return "<missing>"


_MISSING = _Missing()


def _match_condition(value: Any, condition: Any) -> bool:
    if isinstance(condition, dict) and condition and all(
        k.startswith("$") for k in condition
    ):
        for op, operand in condition.items():
            if op == "$eq":
                if value is _MISSING or value != operand:
                    return False
            elif op == "$ne":
                if value is not _MISSING and value == operand:
                    return False
            elif op == "$in":
                if value is _MISSING or value not in operand:
                    return False
            elif op == "$exists":
                if (value is not _MISSING) != bool(operand):
                    return False
            else:
                raise ValueError(f"unsupported selector operator {op}")
        return True
    return value is not _MISSING and value == condition


def match_selector(doc: Any, selector: Dict[str, Any]) -> bool:
    """Evaluate a Mango-style selector against one JSON document.

    Supports field equality (dotted paths for nested fields), ``$eq``,
    ``$ne``, ``$in``, ``$exists`` and a top-level ``$and`` list.

    Args:
        doc: Decoded JSON document.
        selector: Selector body (without the outer ``{"selector": ...}``).

    Returns:
        True if the document matches every condition.
    """
    for field, condition in selector.items():
        if field == "$and":
            if not all(match_selector(doc, sub) for sub in condition):
                return False
            continue
        if not _match_condition(_lookup(doc, field), condition):
            return False
    return True


def selector_body(query: Dict[str, Any]) -> Dict[str, Any]:
    """Return the selector body of a ``{"selector": {...}}`` query."""
    if not isinstance(query, dict):
        raise ValueError("query must be a JSON object")
    if "selector" in query:
        body = query["selector"]
        if not isinstance(body, dict):
            raise ValueError("selector must be a JSON object")
        return body
    return query


# =============================================================================
# Record encoding
# =============================================================================


def encode_record(record: BaseModel) -> bytes:
    """Serialize a record to its canonical persisted JSON form."""
    return record.model_dump_json(by_alias=True).encode("utf-8")


def decode_record(
    model: Type[ModelT],
    payload: Union[str, bytes],
    entity_kind: Optional[str] = None,
    entity_id: Optional[str] = None,
    what: str = "data",
) -> ModelT:
    """Parse a JSON payload into a typed record.

    Args:
        model: Pydantic model class to parse into.
        payload: Raw JSON text or bytes.
        entity_kind: Kind of entity, for error context.
        entity_id: Identifier, for error context.
        what: Short description used in the error message.

    Returns:
        The parsed record.

    Raises:
        ValidationError: If the payload is not valid JSON for the model.
    """
    kind = entity_kind or model.__name__.lower()
    try:
        return model.model_validate_json(payload)
    except PydanticValidationError as exc:
        invalid = {
            ".".join(str(p) for p in err["loc"]) or "<root>": err["msg"]
            for err in exc.errors()
        }
        raise ValidationError(
            message=f"failed to parse {kind} {what}",
            entity_kind=kind,
            entity_id=entity_id,
            invalid_fields=invalid,
        ) from exc


# =============================================================================
# Typed accessor
# =============================================================================


@dataclass(frozen=True)
class StateRead(Generic[ModelT]):
    """Result of a typed read: explicit found flag plus version."""

    key: str
    found: bool
    record: Optional[ModelT] = None
    version: int = 0


class WorldStateAccessor:
    """Typed read/write/exists wrapper over a WorldStateStore.

    Attributes:
        store: The backend.
        codec: Key codec used to locate entities.
    """

    def __init__(self, store: WorldStateStore, codec: KeyCodec) -> None:
        self.store = store
        self.codec = codec

    # ------------------------------------------------------------------
    # Key-level contract
    # ------------------------------------------------------------------

    def get(self, key: str) -> Optional[VersionedValue]:
        """Return the raw stored value, or None when absent."""
        return self.store.get_state(key)

    def put(
        self,
        key: str,
        payload: bytes,
        expected_version: Optional[int] = None,
    ) -> int:
        """Write a raw payload; see WorldStateStore.put_state."""
        return self.store.put_state(key, payload, expected_version)

    def exists(self, key: str) -> bool:
        """Return True if key is present."""
        return self.store.get_state(key) is not None

    def version(self, key: str) -> int:
        """Return the stored version of key, 0 when absent."""
        stored = self.store.get_state(key)
        return stored.version if stored is not None else 0

    # ------------------------------------------------------------------
    # Entity-level helpers
    # ------------------------------------------------------------------

    def key_for(self, kind: EntityKind, entity_id: str) -> str:
        return self.codec.entity_key(kind, entity_id)

    def read(
        self,
        kind: EntityKind,
        entity_id: str,
        model: Type[ModelT],
    ) -> StateRead[ModelT]:
        """Read and decode one entity.

        Absence is reported through ``found=False``, never an exception.
        An empty id names no record and is reported as absent.

        Raises:
            ValidationError: If the stored payload is corrupt.
            StoreError: On backend failure.
        """
        if not entity_id:
            return StateRead(key="", found=False)
        key = self.key_for(kind, entity_id)
        stored = self.store.get_state(key)
        if stored is None:
            logger.debug("World state miss: %s", key)
            return StateRead(key=key, found=False)
        record = decode_record(
            model,
            stored.value,
            entity_kind=kind.value,
            entity_id=entity_id,
            what="record",
        )
        return StateRead(key=key, found=True, record=record, version=stored.version)

    def write(
        self,
        kind: EntityKind,
        entity_id: str,
        record: BaseModel,
        expected_version: Optional[int] = None,
    ) -> int:
        """Encode and write one entity, enriching conflicts with its identity.

        Raises:
            StaleStateError: If expected_version does not hold.
            StoreError: On backend failure.
        """
        key = self.key_for(kind, entity_id)
        try:
            return self.store.put_state(key, encode_record(record), expected_version)
        except StaleStateError as exc:
            exc.entity_kind = kind.value
            exc.entity_id = entity_id
            raise

    def entity_exists(self, kind: EntityKind, entity_id: str) -> bool:
        return self.exists(self.key_for(kind, entity_id))


def drain(iterator: StateQueryIterator) -> List[KV]:
    """Materialize every result of an iterator and close it."""
    with iterator:
        return list(iterator)


__all__ = [
    "VersionedValue",
    "KV",
    "StateQueryIterator",
    "ListStateQueryIterator",
    "WorldStateStore",
    "match_selector",
    "selector_body",
    "encode_record",
    "decode_record",
    "StateRead",
    "WorldStateAccessor",
    "drain",
]
