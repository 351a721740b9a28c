# -*- coding: utf-8 -*-
"""
AgriChain: Supply-Chain Ledger for Agricultural Products
========================================================

This package tracks agricultural products through a multi-party supply
chain on top of a versioned key-value world state. A farmer creates the
product, it moves through custody/status transitions, and certificates
are attached to it. It supports:

- Product creation, status transitions and an append-only step history
- Write-once farmer registration
- Certificate storage with overwrite-on-create semantics
- Secondary-index product queries (native selectors or scan fallback)
- Version-checked conditional writes for concurrent invocations
- Memory and SQLAlchemy world-state backends
- Name-addressed string invocation of every ledger operation
- SHA-256 provenance chain tracking for audit trails
- 9 Prometheus metrics for observability
- FastAPI REST API
- Thread-safe configuration with AGRICHAIN_ env prefix

Key Components:
    - config: AgriChainConfig with AGRICHAIN_ env prefix
    - models: Pydantic v2 models for all persisted records
    - keys: World-state key derivation
    - world_state: Backend contract and typed accessor
    - backends: Memory and SQL world-state backends
    - product_ledger: Product state machine engine
    - farmer_registry: Farmer registration engine
    - certificate_registry: Certificate storage engine
    - product_query: Secondary-index query engine
    - invocation: Name-addressed string dispatcher
    - provenance: SHA-256 chain-hashed audit trails
    - metrics: 9 Prometheus metrics
    - api: FastAPI HTTP service
    - setup: AgriChainService facade

Example:
    >>> from agrichain import AgriChainService
    >>> service = AgriChainService()
    >>> service.create_product('{"id": "P1", "farmerID": "F1"}').status
    <ProductStatus.PLANTED: 'PLANTED'>
"""

__version__ = "1.0.0"

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------
from agrichain.config import (
    AgriChainConfig,
    get_config,
    set_config,
    reset_config,
)

# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------
from agrichain.models import (
    ZERO_TIME,
    ProductStatus,
    EntityKind,
    Location,
    SupplyChainStep,
    Product,
    Farmer,
    Certificate,
)

# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------
from agrichain.exceptions import (
    AgriChainException,
    ValidationError,
    ConflictError,
    StaleStateError,
    NotFoundError,
    QueryError,
    StoreError,
)

# ---------------------------------------------------------------------------
# Core engines
# ---------------------------------------------------------------------------
from agrichain.clock import Clock, FixedClock, SystemClock
from agrichain.keys import KeyCodec
from agrichain.world_state import WorldStateAccessor, WorldStateStore
from agrichain.backends import MemoryWorldState, SQLWorldState, create_store
from agrichain.product_ledger import ProductLedgerEngine
from agrichain.farmer_registry import FarmerRegistryEngine
from agrichain.certificate_registry import CertificateRegistryEngine
from agrichain.product_query import ProductQueryEngine
from agrichain.invocation import ContractInvoker
from agrichain.provenance import ProvenanceTracker

# ---------------------------------------------------------------------------
# Service setup facade
# ---------------------------------------------------------------------------
from agrichain.setup import (
    AgriChainService,
    configure_agrichain,
    get_agrichain,
    get_agrichain_service,
    get_router,
)

__all__ = [
    "__version__",
    # Configuration
    "AgriChainConfig",
    "get_config",
    "set_config",
    "reset_config",
    # Models
    "ZERO_TIME",
    "ProductStatus",
    "EntityKind",
    "Location",
    "SupplyChainStep",
    "Product",
    "Farmer",
    "Certificate",
    # Exceptions
    "AgriChainException",
    "ValidationError",
    "ConflictError",
    "StaleStateError",
    "NotFoundError",
    "QueryError",
    "StoreError",
    # Core engines
    "Clock",
    "FixedClock",
    "SystemClock",
    "KeyCodec",
    "WorldStateAccessor",
    "WorldStateStore",
    "MemoryWorldState",
    "SQLWorldState",
    "create_store",
    "ProductLedgerEngine",
    "FarmerRegistryEngine",
    "CertificateRegistryEngine",
    "ProductQueryEngine",
    "ContractInvoker",
    "ProvenanceTracker",
    # Service
    "AgriChainService",
    "configure_agrichain",
    "get_agrichain",
    "get_agrichain_service",
    "get_router",
]
