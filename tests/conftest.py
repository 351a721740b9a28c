# -*- coding: utf-8 -*-
"""Pytest configuration and shared fixtures for the AgriChain ledger."""

import json
from datetime import datetime, timezone
from typing import Any, Dict

import pytest

from agrichain.backends.memory import MemoryWorldState
from agrichain.backends.sql import SQLWorldState
from agrichain.certificate_registry import CertificateRegistryEngine
from agrichain.clock import FixedClock
from agrichain.config import AgriChainConfig, reset_config
from agrichain.farmer_registry import FarmerRegistryEngine
from agrichain.keys import KeyCodec
from agrichain.product_ledger import ProductLedgerEngine
from agrichain.product_query import ProductQueryEngine
from agrichain.provenance import ProvenanceTracker
from agrichain.setup import AgriChainService, set_agrichain_service
from agrichain.world_state import WorldStateAccessor

T0 = datetime(2025, 3, 1, 9, 0, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def _reset_singletons():
    """Keep the config and service singletons from leaking between tests."""
    reset_config()
    set_agrichain_service(None)
    yield
    reset_config()
    set_agrichain_service(None)


@pytest.fixture
def fixed_clock():
    """Clock pinned to 2025-03-01T09:00:00Z."""
    return FixedClock(T0)


@pytest.fixture
def memory_store():
    return MemoryWorldState()


@pytest.fixture
def sql_store():
    store = SQLWorldState("sqlite:///:memory:")
    yield store
    store.close()


@pytest.fixture(params=["memory", "sql"])
def store(request):
    """Each backend in turn; tests using it must pass on both."""
    if request.param == "memory":
        yield MemoryWorldState()
    else:
        sql = SQLWorldState("sqlite:///:memory:")
        yield sql
        sql.close()


@pytest.fixture
def codec():
    return KeyCodec()


@pytest.fixture
def accessor(store, codec):
    return WorldStateAccessor(store, codec)


@pytest.fixture
def provenance(fixed_clock):
    return ProvenanceTracker(clock=fixed_clock)


@pytest.fixture
def product_engine(accessor, fixed_clock, provenance):
    return ProductLedgerEngine(accessor, clock=fixed_clock, provenance=provenance)


@pytest.fixture
def farmer_engine(accessor, fixed_clock, provenance):
    return FarmerRegistryEngine(accessor, clock=fixed_clock, provenance=provenance)


@pytest.fixture
def certificate_engine(accessor, provenance):
    return CertificateRegistryEngine(accessor, provenance=provenance)


@pytest.fixture
def query_engine(accessor):
    return ProductQueryEngine(accessor, config=AgriChainConfig())


@pytest.fixture
def service(store, fixed_clock):
    """AgriChainService over each backend with a fixed clock."""
    svc = AgriChainService(config=AgriChainConfig(), store=store, clock=fixed_clock)
    yield svc


@pytest.fixture
def product_payload():
    """Factory for product JSON payloads."""

    def _make(product_id: str = "P1", **fields: Any) -> str:
        data: Dict[str, Any] = {
            "id": product_id,
            "name": "Organic Tomatoes",
            "batchNumber": "B-2025-001",
            "farmerID": "F1",
            "farmLocation": {
                "latitude": 12.97,
                "longitude": 77.59,
                "address": "Green Acres, Karnataka",
            },
            "plantingDate": "2025-01-10T00:00:00Z",
            "harvestDate": "2025-02-20T00:00:00Z",
            "quality": "A",
            "certifications": ["C1"],
            "currentOwner": "F1",
            "currentLocation": {
                "latitude": 12.97,
                "longitude": 77.59,
                "address": "Green Acres, Karnataka",
            },
            "status": "PLANTED",
        }
        data.update(fields)
        return json.dumps(data)

    return _make


@pytest.fixture
def farmer_payload():
    """Factory for farmer JSON payloads."""

    def _make(farmer_id: str = "F1", **fields: Any) -> str:
        data: Dict[str, Any] = {
            "id": farmer_id,
            "name": "Asha Rao",
            "email": "asha@example.org",
            "phone": "+91-555-0100",
            "farmLocation": {"latitude": 12.97, "longitude": 77.59, "address": "Green Acres"},
            "certifications": ["organic"],
            "verified": False,
            "metadata": {"cooperative": "North Valley"},
        }
        data.update(fields)
        return json.dumps(data)

    return _make


@pytest.fixture
def certificate_payload():
    """Factory for certificate JSON payloads."""

    def _make(cert_id: str = "C1", **fields: Any) -> str:
        data: Dict[str, Any] = {
            "id": cert_id,
            "productID": "P1",
            "type": "ORGANIC",
            "issuedBy": "CertBody",
            "issuedDate": "2025-01-01T00:00:00Z",
            "validUntil": "2026-01-01T00:00:00Z",
            "ipfsHash": "QmHash",
            "status": "VALID",
        }
        data.update(fields)
        return json.dumps(data)

    return _make
