# -*- coding: utf-8 -*-
"""
In-memory world-state backend.

Thread-safe dict-backed store with native selector queries. Values are
kept as the exact bytes written, so what a query sees is what a reader
would decode. Query and range results are snapshots taken under the lock
and returned in key order.
"""

from __future__ import annotations

import json
import logging
import threading
from typing import Any, Dict, List, Optional, Tuple

from agrichain.exceptions import QueryError
from agrichain.world_state import (
    KV,
    ListStateQueryIterator,
    StateQueryIterator,
    VersionedValue,
    WorldStateStore,
    match_selector,
    selector_body,
)

logger = logging.getLogger(__name__)


class MemoryWorldState(WorldStateStore):
    """Dict-backed versioned world state.

    Attributes:
        _data: key -> (payload, version).
        _lock: Guards every read and conditional write.
    """

    supports_rich_query = True

    def __init__(self) -> None:
        self._data: Dict[str, Tuple[bytes, int]] = {}
        self._lock = threading.RLock()
        logger.info("MemoryWorldState initialized")

    def get_state(self, key: str) -> Optional[VersionedValue]:
        with self._lock:
            entry = self._data.get(key)
        if entry is None:
            return None
        return VersionedValue(value=entry[0], version=entry[1])

    def put_state(
        self,
        key: str,
        value: bytes,
        expected_version: Optional[int] = None,
    ) -> int:
        with self._lock:
            current = self._data.get(key)
            current_version = current[1] if current is not None else 0
            if expected_version is not None and expected_version != current_version:
                raise self.stale(key, expected_version, current_version)
            new_version = current_version + 1
            self._data[key] = (bytes(value), new_version)
        logger.debug("MemoryWorldState put %s (version %d)", key, new_version)
        return new_version

    def get_state_by_range(self, start_key: str, end_key: str) -> StateQueryIterator:
        with self._lock:
            keys = sorted(self._data)
            results = [
                KV(key=k, value=self._data[k][0])
                for k in keys
                if (not start_key or k >= start_key) and (not end_key or k < end_key)
            ]
        return ListStateQueryIterator(results)

    def get_state_by_prefix(self, prefix: str) -> StateQueryIterator:
        with self._lock:
            results = [
                KV(key=k, value=self._data[k][0])
                for k in sorted(self._data)
                if k.startswith(prefix)
            ]
        return ListStateQueryIterator(results)

    def get_query_result(self, selector: Dict[str, Any]) -> StateQueryIterator:
        try:
            body = selector_body(selector)
        except ValueError as exc:
            raise QueryError(message=str(exc), selector=selector) from exc

        with self._lock:
            snapshot = sorted(self._data.items())

        results: List[KV] = []
        for key, (value, _version) in snapshot:
            try:
                doc = json.loads(value)
            except ValueError:
                # Undecodable documents are invisible to the query engine.
                continue
            try:
                matched = match_selector(doc, body)
            except ValueError as exc:
                raise QueryError(message=str(exc), selector=selector) from exc
            if matched:
                results.append(KV(key=key, value=value))
        return ListStateQueryIterator(results)

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)


__all__ = ["MemoryWorldState"]
