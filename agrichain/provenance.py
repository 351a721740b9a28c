# -*- coding: utf-8 -*-
"""
AgriChain Provenance Tracker

SHA-256 chain-hashed log of every write the ledger performs. Each entry
records the entity kind and id, the action, the hash of the record as
written and the actor, and links to the previous entry's chain hash so
that any edit or reordering of the log is detectable.

This log is a process-local audit aid for operators. It is separate from
a product's supplyChainSteps, which are part of the persisted record.

Example:
    >>> tracker = ProvenanceTracker()
    >>> entry = tracker.record("product", "P1", "create", data_hash="ab12")
    >>> tracker.verify_chain()
    True

Author: AgriChain Platform Team
Status: Production Ready
"""

from __future__ import annotations

import hashlib
import json
import logging
import threading
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from agrichain.clock import Clock, SystemClock

logger = logging.getLogger(__name__)


def compute_hash(data: Any) -> str:
    """Compute a deterministic SHA-256 hash of arbitrary data.

    Pydantic models are hashed through their persisted (aliased) JSON form.

    Args:
        data: Data to hash.

    Returns:
        SHA-256 hex digest string.
    """
    if isinstance(data, BaseModel):
        serializable = data.model_dump(mode="json", by_alias=True)
    else:
        serializable = data
    raw = json.dumps(serializable, sort_keys=True, default=str)
    return hashlib.sha256(raw.encode()).hexdigest()


class ProvenanceEntry(BaseModel):
    """One link in the provenance chain."""

    entry_id: str = Field(default_factory=lambda: f"PRV-{uuid.uuid4().hex[:12]}")
    entity_kind: str
    entity_id: str
    action: str
    data_hash: str
    actor: Optional[str] = None
    timestamp: datetime
    chain_hash: str = ""


class ProvenanceTracker:
    """Tracks ledger writes with SHA-256 chain hashing.

    Attributes:
        _entries: Ordered list of provenance entries.
        _last_chain_hash: Most recent chain hash for linking.
    """

    _GENESIS_HASH = hashlib.sha256(b"agrichain-provenance-genesis").hexdigest()

    def __init__(self, clock: Optional[Clock] = None) -> None:
        self._clock = clock or SystemClock()
        self._entries: List[ProvenanceEntry] = []
        self._last_chain_hash: str = self._GENESIS_HASH
        self._lock = threading.Lock()
        logger.info("ProvenanceTracker initialized")

    def record(
        self,
        entity_kind: str,
        entity_id: str,
        action: str,
        data_hash: str,
        actor: Optional[str] = None,
    ) -> ProvenanceEntry:
        """Append an entry to the provenance chain.

        Args:
            entity_kind: Kind of entity written.
            entity_id: Identifier of the entity written.
            action: Operation name (create, status_update, step_append, ...).
            data_hash: SHA-256 of the record as written.
            actor: Acting party, when known.

        Returns:
            The new entry with its chain hash set.
        """
        with self._lock:
            entry = ProvenanceEntry(
                entity_kind=entity_kind,
                entity_id=entity_id,
                action=action,
                data_hash=data_hash,
                actor=actor,
                timestamp=self._clock.now_utc(),
            )
            entry.chain_hash = self._link(self._last_chain_hash, entry)
            self._entries.append(entry)
            self._last_chain_hash = entry.chain_hash

        logger.debug(
            "Recorded provenance: %s %s %s", action, entity_kind, entity_id,
        )
        return entry

    def get_trail(
        self,
        entity_id: Optional[str] = None,
        entity_kind: Optional[str] = None,
        limit: int = 100,
    ) -> List[ProvenanceEntry]:
        """Return provenance entries in write order, optionally filtered.

        Args:
            entity_id: Filter by entity identifier.
            entity_kind: Filter by entity kind.
            limit: Maximum number of entries returned (most recent kept).
        """
        with self._lock:
            entries = list(self._entries)
        if entity_id is not None:
            entries = [e for e in entries if e.entity_id == entity_id]
        if entity_kind is not None:
            entries = [e for e in entries if e.entity_kind == entity_kind]
        return entries[-limit:] if limit > 0 else []

    def verify_chain(self, entries: Optional[List[ProvenanceEntry]] = None) -> bool:
        """Recompute chain hashes from genesis and compare.

        Args:
            entries: Entries to verify. Uses the full log if None.

        Returns:
            True if the chain is intact, False if tampered.
        """
        if entries is None:
            with self._lock:
                entries = list(self._entries)

        current_hash = self._GENESIS_HASH
        for entry in entries:
            expected = self._link(current_hash, entry)
            if entry.chain_hash != expected:
                logger.warning(
                    "Chain verification failed at entry %s", entry.entry_id,
                )
                return False
            current_hash = expected
        return True

    def export_json(self) -> str:
        """Export all provenance entries as a JSON string."""
        with self._lock:
            records = [entry.model_dump(mode="json") for entry in self._entries]
        return json.dumps(records, indent=2, default=str)

    @property
    def entry_count(self) -> int:
        return len(self._entries)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _link(previous_hash: str, entry: ProvenanceEntry) -> str:
        entry_data: Dict[str, Any] = {
            "kind": entry.entity_kind,
            "id": entry.entity_id,
            "action": entry.action,
            "data": entry.data_hash,
            "actor": entry.actor,
            "timestamp": entry.timestamp.isoformat(),
        }
        entry_hash = compute_hash(entry_data)
        combined = f"{previous_hash}:{entry_hash}"
        return hashlib.sha256(combined.encode()).hexdigest()


__all__ = [
    "compute_hash",
    "ProvenanceEntry",
    "ProvenanceTracker",
]
