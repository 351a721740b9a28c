# -*- coding: utf-8 -*-
"""
Product Query Engine - AgriChain Ledger

Secondary-index lookups over products by field value rather than by key.

Two execution modes share one contract:

    selector  the backend evaluates a ``{"selector": {...}}`` query natively
    scan      the backend cannot; the Product key prefix is scanned and each
              record is matched locally with the same selector semantics

Either way, matches come back as typed Products in store order, an empty
result is an empty list, and the backend iterator is closed on every exit
path. With the scan fallback disabled, a backend without selector support
raises QueryError.

Example:
    >>> engine = ProductQueryEngine(accessor)
    >>> [p.id for p in engine.query_products_by_farmer("F1")]
    ['P1', 'P2']

Author: AgriChain Platform Team
Status: Production Ready
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Dict, List, Optional

from agrichain.config import AgriChainConfig
from agrichain.exceptions import (
    QueryError,
    StoreError,
    ValidationError,
)
from agrichain.metrics import record_query, track_operation
from agrichain.models import EntityKind, Product, ProductStatus
from agrichain.world_state import (
    StateQueryIterator,
    WorldStateAccessor,
    decode_record,
    match_selector,
    selector_body,
)

logger = logging.getLogger(__name__)

_KIND = EntityKind.PRODUCT


class ProductQueryEngine:
    """Selector queries over the Product namespace.

    Attributes:
        _accessor: Typed world-state accessor (its codec defines the
            Product namespace).
        _fallback_enabled: Whether to scan when the backend has no
            selector support.
        _page_limit: Maximum results per query, 0 for unbounded.
    """

    def __init__(
        self,
        accessor: WorldStateAccessor,
        config: Optional[AgriChainConfig] = None,
    ) -> None:
        """Initialize ProductQueryEngine.

        Args:
            accessor: World-state accessor to query through.
            config: Optional configuration; defaults apply when omitted.
        """
        config = config or AgriChainConfig()
        self._accessor = accessor
        self._fallback_enabled = config.query_fallback_enabled
        self._page_limit = config.query_page_limit
        self._queries_run = 0
        logger.info(
            "ProductQueryEngine initialized: rich_query=%s, fallback=%s",
            accessor.store.supports_rich_query, self._fallback_enabled,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def query_products_by_farmer(self, farmer_id: str) -> List[Product]:
        """Return every product whose farmerID equals farmer_id."""
        return self.query_products({"selector": {"farmerID": farmer_id}})

    def query_products_by_status(self, status: str) -> List[Product]:
        """Return every product currently in the given status.

        Any stored status can be queried, known or not.

        Raises:
            ValidationError: If status is empty.
        """
        self._check_status(status)
        return self.query_products({"selector": {"status": status}})

    def query_products_by_farmer_and_status(
        self,
        farmer_id: str,
        status: str,
    ) -> List[Product]:
        """Return the products of farmer_id currently in the given status.

        Raises:
            ValidationError: If status is empty.
        """
        self._check_status(status)
        return self.query_products(
            {"selector": {"farmerID": farmer_id, "status": status}},
        )

    def query_products(self, query: Dict[str, Any]) -> List[Product]:
        """Run a selector query over products.

        Args:
            query: ``{"selector": {...}}`` document, or a bare selector body.

        Returns:
            Matching products in store order.

        Raises:
            QueryError: If the query is malformed, the backend query fails,
                or selector queries are unavailable.
            ValidationError: If a matched record cannot be parsed.
        """
        start_time = time.monotonic()
        with track_operation("query_products"):
            try:
                body = selector_body(query)
            except ValueError as exc:
                raise QueryError(
                    message=str(exc), selector=query, entity_kind=_KIND.value,
                ) from exc
            query = {"selector": body}

            store = self._accessor.store
            if store.supports_rich_query:
                mode = "selector"
                iterator = self._open(lambda: store.get_query_result(query), query)
            elif self._fallback_enabled:
                mode = "scan"
                prefix = self._accessor.codec.kind_prefix(_KIND)
                iterator = self._open(
                    lambda: store.get_state_by_prefix(prefix), query,
                )
            else:
                raise QueryError(
                    message=(
                        f"{type(store).__name__} does not support selector "
                        "queries and the scan fallback is disabled"
                    ),
                    selector=query,
                    entity_kind=_KIND.value,
                )

            with iterator:
                products = self._collect(iterator, body, local_match=mode == "scan")

        self._queries_run += 1
        record_query(mode)

        elapsed_ms = (time.monotonic() - start_time) * 1000
        logger.info(
            "Product query %s (%s) matched %d (%.1f ms)",
            json.dumps(body, sort_keys=True), mode, len(products), elapsed_ms,
        )
        return products

    def get_statistics(self) -> Dict[str, Any]:
        return {"queries_run": self._queries_run}

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _check_status(status: str) -> None:
        if not status:
            raise ValidationError(
                message="product status must not be empty",
                entity_kind=_KIND.value,
                invalid_fields={"status": "must not be empty"},
            )
        if not ProductStatus.is_known(status):
            logger.debug("Querying unrecognised product status %r", status)

    @staticmethod
    def _open(open_iterator: Any, query: Dict[str, Any]) -> StateQueryIterator:
        try:
            return open_iterator()
        except StoreError as exc:
            raise QueryError(
                message=f"backend query failed: {exc.message}",
                selector=query,
                entity_kind=_KIND.value,
            ) from exc

    def _collect(
        self,
        iterator: StateQueryIterator,
        body: Dict[str, Any],
        local_match: bool,
    ) -> List[Product]:
        codec = self._accessor.codec
        products: List[Product] = []
        try:
            while iterator.has_next():
                kv = iterator.next()
                if codec.namespaced and codec.kind_of(kv.key) is not _KIND:
                    continue
                if local_match and not self._matches(kv.value, body):
                    continue
                products.append(
                    decode_record(
                        Product,
                        kv.value,
                        entity_kind=_KIND.value,
                        entity_id=codec.id_of(kv.key),
                        what="record",
                    )
                )
                if self._page_limit and len(products) >= self._page_limit:
                    logger.debug("Product query truncated at %d", self._page_limit)
                    break
        except StoreError as exc:
            raise QueryError(
                message=f"failed to read query results: {exc.message}",
                selector={"selector": body},
                entity_kind=_KIND.value,
            ) from exc
        return products

    @staticmethod
    def _matches(value: bytes, body: Dict[str, Any]) -> bool:
        try:
            doc = json.loads(value)
        except ValueError:
            # Undecodable documents are invisible to selector queries.
            return False
        try:
            return match_selector(doc, body)
        except ValueError as exc:
            raise QueryError(
                message=str(exc),
                selector={"selector": body},
                entity_kind=_KIND.value,
            ) from exc


__all__ = ["ProductQueryEngine"]
