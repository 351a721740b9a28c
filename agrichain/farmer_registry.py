# -*- coding: utf-8 -*-
"""
Farmer Registry Engine - AgriChain Ledger

Write-once registration and lookup of farmers. A farmer record has no
update path: once created it can only be read.

Example:
    >>> registry = FarmerRegistryEngine(accessor)
    >>> farmer = registry.create_farmer('{"id": "F1", "name": "Asha"}')
    >>> registry.get_farmer("F1").name
    'Asha'

Author: AgriChain Platform Team
Status: Production Ready
"""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, Optional

from agrichain.clock import Clock, SystemClock
from agrichain.exceptions import ConflictError, NotFoundError
from agrichain.metrics import record_farmer_created, track_operation
from agrichain.models import EntityKind, Farmer
from agrichain.provenance import ProvenanceTracker, compute_hash
from agrichain.world_state import WorldStateAccessor, decode_record

logger = logging.getLogger(__name__)

_KIND = EntityKind.FARMER


class FarmerRegistryEngine:
    """Farmer registration engine.

    Attributes:
        _accessor: Typed world-state accessor.
        _clock: Time source for createdAt.
        _provenance: Optional ProvenanceTracker.
    """

    def __init__(
        self,
        accessor: WorldStateAccessor,
        clock: Optional[Clock] = None,
        provenance: Optional[ProvenanceTracker] = None,
    ) -> None:
        self._accessor = accessor
        self._clock = clock or SystemClock()
        self._provenance = provenance
        self._farmers_created = 0
        logger.info("FarmerRegistryEngine initialized")

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def create_farmer(self, farmer_data: str) -> Farmer:
        """Register a farmer from its JSON representation.

        Only ``createdAt`` is stamped; every other field is stored as given.

        Args:
            farmer_data: Farmer JSON using the persisted field names.

        Returns:
            The farmer as written.

        Raises:
            ValidationError: If the payload cannot be parsed.
            ConflictError: If a farmer with the same id already exists.
        """
        start_time = time.monotonic()
        with track_operation("create_farmer"):
            farmer = decode_record(Farmer, farmer_data, entity_kind=_KIND.value)

            if self._accessor.entity_exists(_KIND, farmer.id):
                logger.warning("Rejected duplicate farmer %s", farmer.id)
                raise ConflictError(
                    message=f"the farmer {farmer.id} already exists",
                    entity_kind=_KIND.value,
                    entity_id=farmer.id,
                )

            farmer = farmer.model_copy(update={"created_at": self._clock.now_utc()})
            self._accessor.write(_KIND, farmer.id, farmer, expected_version=0)

        self._farmers_created += 1
        if self._provenance is not None:
            self._provenance.record(
                entity_kind=_KIND.value,
                entity_id=farmer.id,
                action="create",
                data_hash=compute_hash(farmer),
            )
        record_farmer_created()

        elapsed_ms = (time.monotonic() - start_time) * 1000
        logger.info(
            "Registered farmer %s: verified=%s (%.1f ms)",
            farmer.id, farmer.verified, elapsed_ms,
        )
        return farmer

    def get_farmer(self, farmer_id: str) -> Farmer:
        """Return the farmer stored under farmer_id.

        Raises:
            NotFoundError: If the farmer does not exist.
            ValidationError: If the stored record is corrupt.
        """
        with track_operation("get_farmer"):
            read = self._accessor.read(_KIND, farmer_id, Farmer)
            if not read.found:
                logger.debug("Farmer %s not found", farmer_id)
                raise NotFoundError(
                    message=f"the farmer {farmer_id} does not exist",
                    entity_kind=_KIND.value,
                    entity_id=farmer_id,
                )
            return read.record

    def farmer_exists(self, farmer_id: str) -> bool:
        if not farmer_id:
            return False
        return self._accessor.entity_exists(_KIND, farmer_id)

    def get_statistics(self) -> Dict[str, Any]:
        return {"farmers_created": self._farmers_created}


__all__ = ["FarmerRegistryEngine"]
