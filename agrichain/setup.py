# -*- coding: utf-8 -*-
"""
AgriChain Service Facade

Provides the main service class and FastAPI integration functions:
- AgriChainService: Composes the world-state backend, key codec and all
  ledger engines into a single facade
- configure_agrichain(app): Register the service on a FastAPI app
- get_agrichain(app): Retrieve the service from app state
- get_agrichain_service(): Thread-safe process-wide singleton
- get_router(): Return the FastAPI router for mounting

Author: AgriChain Platform Team
Status: Production Ready
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, List, Optional

from agrichain.backends import create_store
from agrichain.certificate_registry import CertificateRegistryEngine
from agrichain.clock import Clock, SystemClock
from agrichain.config import AgriChainConfig, get_config
from agrichain.farmer_registry import FarmerRegistryEngine
from agrichain.invocation import ContractInvoker
from agrichain.keys import KeyCodec
from agrichain.metrics import set_metrics_enabled
from agrichain.models import Certificate, Farmer, Product, SupplyChainStep
from agrichain.product_ledger import ProductLedgerEngine
from agrichain.product_query import ProductQueryEngine
from agrichain.provenance import ProvenanceEntry, ProvenanceTracker
from agrichain.world_state import WorldStateAccessor, WorldStateStore

logger = logging.getLogger(__name__)


class AgriChainService:
    """Facade composing the AgriChain ledger engines.

    Provides a single entry point for all ledger operations, delegating
    to the appropriate engine for each entity kind.

    Attributes:
        config: AgriChainConfig instance.
        store: World-state backend.
        codec: Key codec.
        accessor: Typed world-state accessor shared by every engine.
        provenance: ProvenanceTracker, or None when disabled.
        products: ProductLedgerEngine instance.
        farmers: FarmerRegistryEngine instance.
        certificates: CertificateRegistryEngine instance.
        query: ProductQueryEngine instance.
        invoker: ContractInvoker bound to this service.
    """

    def __init__(
        self,
        config: Optional[AgriChainConfig] = None,
        store: Optional[WorldStateStore] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        """Initialize the service and all engines.

        Args:
            config: AgriChainConfig instance. If None, loads from env.
            store: Pre-built backend; overrides ``config.backend``.
            clock: Time source for ledger timestamps. Defaults to system time.
        """
        self.config = config or get_config()
        self.clock = clock or SystemClock()

        logging.getLogger("agrichain").setLevel(self.config.log_level)
        set_metrics_enabled(self.config.enable_metrics)

        self.store = store or create_store(self.config)
        self.codec = KeyCodec(namespaced=self.config.key_namespacing)
        self.accessor = WorldStateAccessor(self.store, self.codec)

        self.provenance: Optional[ProvenanceTracker] = None
        if self.config.enable_provenance:
            self.provenance = ProvenanceTracker(clock=self.clock)

        self.products = ProductLedgerEngine(
            self.accessor, clock=self.clock, provenance=self.provenance,
        )
        self.farmers = FarmerRegistryEngine(
            self.accessor, clock=self.clock, provenance=self.provenance,
        )
        self.certificates = CertificateRegistryEngine(
            self.accessor, provenance=self.provenance,
        )
        self.query = ProductQueryEngine(self.accessor, config=self.config)
        self.invoker = ContractInvoker(self)

        self._started = False
        logger.info(
            "AgriChainService initialized: backend=%s, namespaced=%s",
            type(self.store).__name__, self.codec.namespaced,
        )

    # =========================================================================
    # Bootstrap
    # =========================================================================

    def init_ledger(self) -> None:
        """Initialize the ledger. Performs no writes."""
        logger.info("AgriChain ledger initialized")

    def startup(self) -> None:
        if self._started:
            return
        self.init_ledger()
        self._started = True
        logger.info("AgriChainService started")

    def shutdown(self) -> None:
        self.store.close()
        self._started = False
        logger.info("AgriChainService shut down")

    # =========================================================================
    # Product Delegation
    # =========================================================================

    def create_product(self, product_data: str) -> Product:
        """Create a product. Delegates to ProductLedgerEngine."""
        return self.products.create_product(product_data)

    def get_product(self, product_id: str) -> Product:
        return self.products.get_product(product_id)

    def update_product_status(
        self,
        product_id: str,
        status: str,
        location_json: str,
        actor: str,
    ) -> Product:
        """Transition product status. Delegates to ProductLedgerEngine.

        Args:
            product_id: Product identifier.
            status: Target status name.
            location_json: Location JSON or empty string.
            actor: New owner.

        Returns:
            Updated Product.
        """
        return self.products.update_product_status(
            product_id, status, location_json, actor,
        )

    def add_supply_chain_step(self, product_id: str, step_data: str) -> SupplyChainStep:
        return self.products.add_supply_chain_step(product_id, step_data)

    def get_product_history(self, product_id: str) -> List[SupplyChainStep]:
        return self.products.get_product_history(product_id)

    def product_exists(self, product_id: str) -> bool:
        return self.products.product_exists(product_id)

    # =========================================================================
    # Farmer / Certificate Delegation
    # =========================================================================

    def create_farmer(self, farmer_data: str) -> Farmer:
        return self.farmers.create_farmer(farmer_data)

    def get_farmer(self, farmer_id: str) -> Farmer:
        return self.farmers.get_farmer(farmer_id)

    def add_certificate(self, cert_data: str) -> Certificate:
        return self.certificates.add_certificate(cert_data)

    def get_certificate(self, cert_id: str) -> Certificate:
        return self.certificates.get_certificate(cert_id)

    # =========================================================================
    # Query Delegation
    # =========================================================================

    def query_products_by_farmer(self, farmer_id: str) -> List[Product]:
        """Products whose farmerID matches. Delegates to ProductQueryEngine."""
        return self.query.query_products_by_farmer(farmer_id)

    def query_products_by_status(self, status: str) -> List[Product]:
        return self.query.query_products_by_status(status)

    def query_products_by_farmer_and_status(
        self,
        farmer_id: str,
        status: str,
    ) -> List[Product]:
        return self.query.query_products_by_farmer_and_status(farmer_id, status)

    def query_products(self, query: Dict[str, Any]) -> List[Product]:
        return self.query.query_products(query)

    # =========================================================================
    # Invocation / Provenance / Statistics
    # =========================================================================

    def invoke(self, function: str, *args: str) -> str:
        """Invoke a ledger function by name. Delegates to ContractInvoker."""
        return self.invoker.invoke(function, *args)

    def get_provenance_trail(
        self,
        entity_id: Optional[str] = None,
        entity_kind: Optional[str] = None,
        limit: int = 100,
    ) -> List[ProvenanceEntry]:
        if self.provenance is None:
            return []
        return self.provenance.get_trail(
            entity_id=entity_id, entity_kind=entity_kind, limit=limit,
        )

    def get_statistics(self) -> Dict[str, Any]:
        """Get service statistics.

        Returns:
            Dictionary with statistics from all engines.
        """
        provenance: Dict[str, Any] = {"enabled": self.provenance is not None}
        if self.provenance is not None:
            provenance["entries"] = self.provenance.entry_count
            provenance["chain_valid"] = self.provenance.verify_chain()
        return {
            "backend": type(self.store).__name__,
            "rich_query": self.store.supports_rich_query,
            "key_namespacing": self.codec.namespaced,
            "products": self.products.get_statistics(),
            "farmers": self.farmers.get_statistics(),
            "certificates": self.certificates.get_statistics(),
            "queries": self.query.get_statistics(),
            "provenance": provenance,
        }


# =============================================================================
# Thread-safe singleton access
# =============================================================================

_SERVICE_KEY = "agrichain_service"

_singleton_instance: Optional[AgriChainService] = None
_singleton_lock = threading.Lock()


def get_agrichain_service() -> AgriChainService:
    """Get or create the singleton AgriChainService instance."""
    global _singleton_instance
    if _singleton_instance is None:
        with _singleton_lock:
            if _singleton_instance is None:
                _singleton_instance = AgriChainService()
    return _singleton_instance


def set_agrichain_service(service: Optional[AgriChainService]) -> None:
    """Replace (or clear, with None) the singleton service."""
    global _singleton_instance
    with _singleton_lock:
        _singleton_instance = service


# =============================================================================
# FastAPI Integration
# =============================================================================


def configure_agrichain(
    app: Any,
    config: Optional[AgriChainConfig] = None,
    service: Optional[AgriChainService] = None,
) -> AgriChainService:
    """Register the AgriChain service on a FastAPI application.

    Creates the service (unless one is given), stores it as the singleton
    and in app.state, mounts the API router and starts the service.

    Args:
        app: FastAPI application instance.
        config: Optional AgriChainConfig.
        service: Pre-built service to register instead of a new one.

    Returns:
        Configured AgriChainService instance.
    """
    service = service or AgriChainService(config=config)
    set_agrichain_service(service)
    setattr(app.state, _SERVICE_KEY, service)

    app.include_router(get_router(prefix=service.config.api_prefix))
    service.startup()

    logger.info("AgriChain service configured on FastAPI app")
    return service


def get_agrichain(app: Any) -> AgriChainService:
    """Retrieve the AgriChain service from a FastAPI application.

    Raises:
        RuntimeError: If the service is not configured.
    """
    service = getattr(app.state, _SERVICE_KEY, None)
    if service is None:
        raise RuntimeError(
            "AgriChain service not configured. "
            "Call configure_agrichain(app) first."
        )
    return service


def get_router(prefix: Optional[str] = None) -> Any:
    """Return a FastAPI router for the AgriChain service.

    Args:
        prefix: Route prefix. Defaults to ``config.api_prefix``.
    """
    from agrichain.api.router import create_router

    return create_router(prefix or get_config().api_prefix)


__all__ = [
    "AgriChainService",
    "get_agrichain_service",
    "set_agrichain_service",
    "configure_agrichain",
    "get_agrichain",
    "get_router",
]
