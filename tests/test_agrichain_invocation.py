"""Tests for ContractInvoker and the AgriChainService facade."""

import json
import logging

import pytest

from agrichain.config import AgriChainConfig, set_config
from agrichain.exceptions import NotFoundError, ValidationError
from agrichain.invocation import encode_result
from agrichain.models import Location
from agrichain.setup import AgriChainService, get_agrichain_service


class TestContractInvoker:
    """Name-addressed string invocation."""

    def test_init_ledger_returns_empty_and_writes_nothing(self, service):
        assert service.invoke("InitLedger") == ""
        assert list(service.store.get_state_by_range("", "")) == []

    def test_create_and_get_product(self, service, product_payload):
        created = json.loads(service.invoke("CreateProduct", product_payload()))
        fetched = json.loads(service.invoke("GetProduct", "P1"))

        assert created == fetched
        assert fetched["farmerID"] == "F1"
        assert fetched["supplyChainSteps"] == []
        assert fetched["createdAt"].startswith("2025-03-01T09:00:00")

    def test_product_exists_is_boolean_text(self, service, product_payload):
        assert service.invoke("ProductExists", "P1") == "false"
        service.invoke("CreateProduct", product_payload())
        assert service.invoke("ProductExists", "P1") == "true"

    def test_status_step_and_history(self, service, product_payload):
        service.invoke("CreateProduct", product_payload())
        service.invoke(
            "UpdateProductStatus", "P1", "HARVESTED",
            '{"latitude": 1, "longitude": 2, "address": "Field"}', "F1",
        )
        service.invoke("AddSupplyChainStep", "P1", '{"stepType": "NOTE", "actor": "QA"}')

        history = json.loads(service.invoke("GetProductHistory", "P1"))
        assert [s["id"] for s in history] == ["P1-0", "P1-1"]
        assert history[0]["stepType"] == "HARVESTED"
        assert history[1]["actor"] == "QA"

    def test_farmers_certificates_and_query(
        self, service, product_payload, farmer_payload, certificate_payload,
    ):
        service.invoke("CreateFarmer", farmer_payload())
        service.invoke("AddCertificate", certificate_payload())
        service.invoke("CreateProduct", product_payload())

        assert json.loads(service.invoke("GetFarmer", "F1"))["email"] == "asha@example.org"
        assert json.loads(service.invoke("GetCertificate", "C1"))["productID"] == "P1"
        products = json.loads(service.invoke("QueryProductsByFarmer", "F1"))
        assert [p["id"] for p in products] == ["P1"]
        assert json.loads(service.invoke("QueryProductsByFarmer", "F9")) == []

    def test_unknown_function(self, service):
        with pytest.raises(ValidationError, match="unknown function"):
            service.invoke("DeleteProduct", "P1")

    def test_wrong_arity(self, service):
        with pytest.raises(ValidationError, match="takes 4 argument"):
            service.invoke("UpdateProductStatus", "P1", "HARVESTED")

    def test_non_string_argument(self, service):
        with pytest.raises(ValidationError):
            service.invoke("GetProduct", 1)

    def test_operation_errors_propagate(self, service):
        with pytest.raises(NotFoundError):
            service.invoke("GetProduct", "nope")

    def test_function_names(self, service):
        assert "QueryProductsByFarmer" in service.invoker.function_names
        assert "InitLedger" in service.invoker.function_names

    def test_encode_result(self):
        assert encode_result(None) == ""
        assert encode_result(True) == "true"
        assert encode_result(False) == "false"
        assert json.loads(encode_result(Location(address="Depot")))["address"] == "Depot"
        assert encode_result([]) == "[]"


class TestAgriChainService:
    """Facade wiring and statistics."""

    def test_sql_backend_from_config(self):
        svc = AgriChainService(config=AgriChainConfig(backend="sql"))
        try:
            assert svc.store.supports_rich_query is False
            assert svc.get_statistics()["backend"] == "SQLWorldState"
        finally:
            svc.shutdown()

    def test_flat_keys_from_config(self, product_payload):
        svc = AgriChainService(config=AgriChainConfig(key_namespacing=False))
        svc.create_product(product_payload())
        assert svc.store.get_state("P1") is not None

    def test_provenance_disabled(self, product_payload):
        svc = AgriChainService(config=AgriChainConfig(enable_provenance=False))
        svc.create_product(product_payload())
        assert svc.provenance is None
        assert svc.get_provenance_trail() == []
        assert svc.get_statistics()["provenance"] == {"enabled": False}

    def test_log_level_applied(self):
        AgriChainService(config=AgriChainConfig(log_level="WARNING"))
        assert logging.getLogger("agrichain").level == logging.WARNING
        AgriChainService(config=AgriChainConfig(log_level="INFO"))

    def test_statistics(self, service, product_payload):
        service.create_product(product_payload())
        service.update_product_status("P1", "HARVESTED", "", "F1")
        service.query_products_by_farmer("F1")

        stats = service.get_statistics()
        assert stats["products"]["products_created"] == 1
        assert stats["products"]["status_updates"] == 1
        assert stats["queries"]["queries_run"] == 1
        assert stats["provenance"]["entries"] == 2
        assert stats["provenance"]["chain_valid"] is True

    def test_startup_is_idempotent(self, service):
        service.startup()
        service.startup()
        service.shutdown()

    def test_singleton_uses_global_config(self):
        set_config(AgriChainConfig(query_page_limit=4))
        svc = get_agrichain_service()
        assert svc is get_agrichain_service()
        assert svc.config.query_page_limit == 4
