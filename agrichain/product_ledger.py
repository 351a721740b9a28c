# -*- coding: utf-8 -*-
"""
Product Ledger Engine - AgriChain Ledger

State machine for Product records. Every public operation is one
read-then-conditional-write unit against world state:

    1. read the current record and its version
    2. validate input and compute the next record
    3. append the audit step the operation requires
    4. write the whole record back, conditional on the version read

Guarantees:
    - supplyChainSteps is append-only; step ids are <productID>-<ordinal>
      with ordinal equal to the step count before the append
    - updatedAt never decreases, even when the clock moves backwards
    - a lost race against a concurrent writer raises StaleStateError and
      writes nothing
    - every status transition appends exactly one step

Example:
    >>> engine = ProductLedgerEngine(accessor, clock=FixedClock(now))
    >>> engine.create_product('{"id": "P1", "farmerID": "F1"}')
    >>> engine.update_product_status("P1", "HARVESTED", "", "F1").status
    'HARVESTED'

Author: AgriChain Platform Team
Status: Production Ready
"""

from __future__ import annotations

import json
import logging
import time
from datetime import datetime
from typing import Any, Dict, List, Optional

from agrichain.clock import Clock, SystemClock
from agrichain.exceptions import ConflictError, NotFoundError, ValidationError
from agrichain.keys import KeyCodec
from agrichain.metrics import (
    record_product_created,
    record_status_update,
    record_step_appended,
    track_operation,
)
from agrichain.models import (
    EntityKind,
    Location,
    Product,
    ProductStatus,
    SupplyChainStep,
)
from agrichain.provenance import ProvenanceTracker, compute_hash
from agrichain.world_state import StateRead, WorldStateAccessor, decode_record

logger = logging.getLogger(__name__)

_KIND = EntityKind.PRODUCT


class ProductLedgerEngine:
    """Create, mutate and audit products held in world state.

    The engine keeps no record state of its own; world state is the only
    source of truth. It never calls ``datetime.now()`` directly and takes
    all timestamps from the injected clock.

    Attributes:
        _accessor: Typed world-state accessor.
        _clock: Time source for createdAt/updatedAt and step timestamps.
        _provenance: Optional ProvenanceTracker.
        _stats: Operation counters for this engine instance.

    Example:
        >>> engine = ProductLedgerEngine(accessor)
        >>> engine.product_exists("P1")
        False
    """

    def __init__(
        self,
        accessor: WorldStateAccessor,
        clock: Optional[Clock] = None,
        provenance: Optional[ProvenanceTracker] = None,
    ) -> None:
        """Initialize ProductLedgerEngine.

        Args:
            accessor: World-state accessor the engine reads and writes through.
            clock: Time source. Defaults to the system clock.
            provenance: Optional ProvenanceTracker instance.
        """
        self._accessor = accessor
        self._clock = clock or SystemClock()
        self._provenance = provenance
        self._stats: Dict[str, int] = {
            "products_created": 0,
            "status_updates": 0,
            "steps_appended": 0,
        }
        logger.info("ProductLedgerEngine initialized")

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def create_product(self, product_data: str) -> Product:
        """Create a product from its JSON representation.

        ``createdAt`` and ``updatedAt`` are stamped with the current time.
        Steps supplied in the payload are stored as given; none are added.

        Args:
            product_data: Product JSON using the persisted field names.

        Returns:
            The product as written.

        Raises:
            ValidationError: If the payload cannot be parsed.
            ConflictError: If a product with the same id already exists.
        """
        start_time = time.monotonic()
        with track_operation("create_product"):
            product = decode_record(Product, product_data, entity_kind=_KIND.value)

            if self._accessor.entity_exists(_KIND, product.id):
                logger.warning("Rejected duplicate product %s", product.id)
                raise ConflictError(
                    message=f"the product {product.id} already exists",
                    entity_kind=_KIND.value,
                    entity_id=product.id,
                )

            now = self._clock.now_utc()
            product = product.model_copy(
                update={"created_at": now, "updated_at": now},
            )
            self._accessor.write(_KIND, product.id, product, expected_version=0)

        self._stats["products_created"] += 1
        self._record_provenance(product, "create", product.current_owner)
        record_product_created()

        elapsed_ms = (time.monotonic() - start_time) * 1000
        logger.info(
            "Created product %s: farmer=%s, status=%s (%.1f ms)",
            product.id, product.farmer_id, product.status, elapsed_ms,
        )
        return product

    def get_product(self, product_id: str) -> Product:
        """Return the product stored under product_id.

        Raises:
            NotFoundError: If the product does not exist.
            ValidationError: If the stored record is corrupt.
        """
        with track_operation("get_product"):
            return self._load(product_id).record

    def update_product_status(
        self,
        product_id: str,
        status: str,
        location_json: str,
        actor: str,
    ) -> Product:
        """Move a product to a new status and record the transition.

        The product's owner becomes ``actor`` and its current location is
        replaced by ``location_json``. An empty string or JSON ``null``
        resets the current location to the zero Location.

        Args:
            product_id: Product identifier.
            status: Target status, usually a ProductStatus name such as
                ``HARVESTED``. Other non-empty values are stored as given.
            location_json: Location JSON, or an empty string.
            actor: Party taking custody.

        Returns:
            The updated product as written.

        Raises:
            NotFoundError: If the product does not exist.
            ValidationError: If the status is empty or the location is invalid.
            StaleStateError: If the product changed concurrently.
        """
        start_time = time.monotonic()
        with track_operation("update_product_status"):
            read = self._load(product_id)
            product = read.record

            new_status = self._parse_status(status, product_id)
            location = self._parse_location(location_json, product_id)
            if location.is_zero():
                logger.debug("Product %s current location reset", product_id)

            now = self._clock.now_utc()
            step = SupplyChainStep(
                id=KeyCodec.step_id(product_id, product.step_count),
                step_type=new_status,
                actor=actor,
                location=location,
                timestamp=now,
                description=f"Product status updated to {new_status}",
            )
            updated = product.model_copy(
                update={
                    "status": new_status,
                    "current_location": location,
                    "current_owner": actor,
                    "updated_at": self._monotonic_update_time(product, now),
                    "supply_chain_steps": [*product.supply_chain_steps, step],
                },
            )
            self._accessor.write(
                _KIND, product_id, updated, expected_version=read.version,
            )

        self._stats["status_updates"] += 1
        self._stats["steps_appended"] += 1
        self._record_provenance(updated, "status_update", actor)
        record_status_update(new_status)
        record_step_appended("status_update")

        elapsed_ms = (time.monotonic() - start_time) * 1000
        logger.info(
            "Product %s status %s -> %s by %s, step %s (%.1f ms)",
            product_id, product.status, new_status, actor,
            step.id, elapsed_ms,
        )
        return updated

    def add_supply_chain_step(self, product_id: str, step_data: str) -> SupplyChainStep:
        """Append a caller-described step to a product's history.

        The caller's stepType, actor, location, description and metadata
        are kept. The step id and timestamp are always assigned here.
        Status, owner and current location are left unchanged.

        Args:
            product_id: Product identifier.
            step_data: Step JSON using the persisted field names.

        Returns:
            The step as appended.

        Raises:
            NotFoundError: If the product does not exist.
            ValidationError: If the step payload cannot be parsed.
            StaleStateError: If the product changed concurrently.
        """
        start_time = time.monotonic()
        with track_operation("add_supply_chain_step"):
            read = self._load(product_id)
            product = read.record

            supplied = decode_record(
                SupplyChainStep,
                step_data,
                entity_kind=_KIND.value,
                entity_id=product_id,
                what="step data",
            )
            now = self._clock.now_utc()
            step = supplied.model_copy(
                update={
                    "id": KeyCodec.step_id(product_id, product.step_count),
                    "timestamp": now,
                },
            )
            updated = product.model_copy(
                update={
                    "updated_at": self._monotonic_update_time(product, now),
                    "supply_chain_steps": [*product.supply_chain_steps, step],
                },
            )
            self._accessor.write(
                _KIND, product_id, updated, expected_version=read.version,
            )

        self._stats["steps_appended"] += 1
        self._record_provenance(updated, "step_append", step.actor or None)
        record_step_appended("manual")

        elapsed_ms = (time.monotonic() - start_time) * 1000
        logger.info(
            "Appended step %s (%s) to product %s (%.1f ms)",
            step.id, step.step_type, product_id, elapsed_ms,
        )
        return step

    def get_product_history(self, product_id: str) -> List[SupplyChainStep]:
        """Return the product's steps in append order.

        The list is a fresh copy; mutating it does not touch the ledger.

        Raises:
            NotFoundError: If the product does not exist.
        """
        with track_operation("get_product_history"):
            return list(self._load(product_id).record.supply_chain_steps)

    def product_exists(self, product_id: str) -> bool:
        """Return True if a product is stored under product_id."""
        if not product_id:
            return False
        with track_operation("product_exists"):
            return self._accessor.entity_exists(_KIND, product_id)

    def get_statistics(self) -> Dict[str, Any]:
        """Return operation counters for this engine instance."""
        return dict(self._stats)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _load(self, product_id: str) -> StateRead[Product]:
        read = self._accessor.read(_KIND, product_id, Product)
        if not read.found:
            logger.debug("Product %s not found", product_id)
            raise NotFoundError(
                message=f"the product {product_id} does not exist",
                entity_kind=_KIND.value,
                entity_id=product_id,
            )
        return read

    @staticmethod
    def _parse_status(status: str, product_id: str) -> str:
        if not status:
            raise ValidationError(
                message="product status must not be empty",
                entity_kind=_KIND.value,
                entity_id=product_id,
                invalid_fields={"status": "must not be empty"},
            )
        if not ProductStatus.is_known(status):
            logger.warning(
                "Product %s moving to unrecognised status %r", product_id, status,
            )
        return status

    @staticmethod
    def _parse_location(location_json: str, product_id: str) -> Location:
        if not location_json:
            return Location()
        try:
            raw = json.loads(location_json)
        except ValueError as exc:
            raise ValidationError(
                message="failed to parse location data",
                entity_kind=_KIND.value,
                entity_id=product_id,
                invalid_fields={"location": str(exc)},
            ) from exc
        if raw is None:
            return Location()
        return decode_record(
            Location,
            location_json,
            entity_kind=_KIND.value,
            entity_id=product_id,
            what="location data",
        )

    @staticmethod
    def _monotonic_update_time(product: Product, now: datetime) -> datetime:
        return max(now, product.updated_at)

    def _record_provenance(
        self,
        product: Product,
        action: str,
        actor: Optional[str],
    ) -> None:
        if self._provenance is None:
            return
        self._provenance.record(
            entity_kind=_KIND.value,
            entity_id=product.id,
            action=action,
            data_hash=compute_hash(product),
            actor=actor or None,
        )


__all__ = ["ProductLedgerEngine"]
