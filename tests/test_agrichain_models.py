"""Tests for the AgriChain pydantic models and their persisted JSON form."""

import json
from datetime import datetime, timezone

import pytest
from pydantic import ValidationError as PydanticValidationError

from agrichain.models import (
    ZERO_TIME,
    AddSupplyChainStepRequest,
    Certificate,
    CreateProductRequest,
    Farmer,
    Location,
    Product,
    ProductStatus,
    RegisterFarmerRequest,
    SupplyChainStep,
)


class TestProductParsing:
    """Parsing products from persisted JSON."""

    def test_aliases_populate_snake_case_fields(self, product_payload):
        product = Product.model_validate_json(product_payload())

        assert product.id == "P1"
        assert product.batch_number == "B-2025-001"
        assert product.farmer_id == "F1"
        assert product.farm_location.address == "Green Acres, Karnataka"
        assert product.current_owner == "F1"
        assert product.status == ProductStatus.PLANTED
        assert product.planting_date == datetime(2025, 1, 10, tzinfo=timezone.utc)

    def test_missing_status_defaults_to_planted(self):
        """Missing or empty status reads as PLANTED."""
        assert Product.model_validate_json('{"id": "P1"}').status == ProductStatus.PLANTED
        assert (
            Product.model_validate_json('{"id": "P1", "status": ""}').status
            == ProductStatus.PLANTED
        )

    def test_unrecognised_status_is_kept(self):
        """Stored statuses outside ProductStatus read back unchanged."""
        product = Product.model_validate_json('{"id": "P1", "status": "RECALLED"}')
        assert product.status == "RECALLED"
        assert json.loads(product.model_dump_json(by_alias=True))["status"] == "RECALLED"

    def test_enum_status_is_stored_as_its_value(self):
        product = Product(id="P1", status=ProductStatus.SOLD)
        assert type(product.status) is str
        assert product.status == "SOLD"

    def test_non_string_status_is_rejected(self):
        with pytest.raises(PydanticValidationError):
            Product.model_validate_json('{"id": "P1", "status": 7}')

    def test_known_statuses(self):
        assert ProductStatus.is_known("HARVESTED")
        assert not ProductStatus.is_known("RECALLED")
        assert not ProductStatus.is_known("")

    def test_null_collections_read_as_empty(self):
        """JSON null list fields read as empty lists."""
        product = Product.model_validate_json(
            '{"id": "P1", "certifications": null, "supplyChainSteps": null}'
        )
        assert product.certifications == []
        assert product.supply_chain_steps == []

    def test_null_timestamps_and_locations_read_as_zero(self):
        product = Product.model_validate_json(
            '{"id": "P1", "createdAt": null, "currentLocation": null}'
        )
        assert product.created_at == ZERO_TIME
        assert product.updated_at == ZERO_TIME
        assert product.current_location == Location()

    def test_unknown_fields_are_ignored(self):
        product = Product.model_validate_json('{"id": "P1", "colour": "red"}')
        assert not hasattr(product, "colour")

    def test_id_is_required(self):
        with pytest.raises(PydanticValidationError):
            Product.model_validate_json('{"name": "no id"}')

    def test_naive_timestamps_are_utc(self):
        product = Product.model_validate_json(
            '{"id": "P1", "harvestDate": "2025-02-20T08:30:00"}'
        )
        assert product.harvest_date.tzinfo is not None
        assert product.harvest_date.utcoffset().total_seconds() == 0


class TestPersistedForm:
    """Serialization uses the persisted field names."""

    def test_product_dump_uses_aliases(self, product_payload):
        product = Product.model_validate_json(product_payload())
        data = json.loads(product.model_dump_json(by_alias=True))

        for field in (
            "id", "name", "batchNumber", "farmerID", "farmLocation",
            "plantingDate", "harvestDate", "quality", "certifications",
            "currentOwner", "currentLocation", "status", "supplyChainSteps",
            "ipfsHash", "qrCode", "createdAt", "updatedAt",
        ):
            assert field in data
        assert data["status"] == "PLANTED"

    def test_step_dump_uses_aliases(self):
        step = SupplyChainStep(id="P1-0", step_type="HARVESTED", actor="F1")
        data = json.loads(step.model_dump_json(by_alias=True))
        assert data["stepType"] == "HARVESTED"
        assert set(data) == {
            "id", "stepType", "actor", "location", "timestamp",
            "description", "metadata",
        }

    def test_farmer_and_certificate_aliases(self, farmer_payload, certificate_payload):
        farmer = Farmer.model_validate_json(farmer_payload())
        cert = Certificate.model_validate_json(certificate_payload())

        assert farmer.metadata == {"cooperative": "North Valley"}
        assert cert.product_id == "P1"
        assert cert.issued_by == "CertBody"
        assert "productID" in json.loads(cert.model_dump_json(by_alias=True))


class TestValueObjects:
    """Location and SupplyChainStep behaviour."""

    def test_zero_location(self):
        assert Location().is_zero()
        assert not Location(address="Depot").is_zero()

    def test_step_is_immutable(self):
        """Appended steps cannot be edited in place."""
        step = SupplyChainStep(id="P1-0")
        with pytest.raises(PydanticValidationError):
            step.actor = "someone else"

    def test_step_count(self):
        product = Product(id="P1", supply_chain_steps=[SupplyChainStep(id="P1-0")])
        assert product.step_count == 1


class TestRequestModels:
    """Validation of HTTP request bodies."""

    def test_complete_product_request(self, product_payload):
        request = CreateProductRequest.model_validate_json(product_payload())
        dumped = request.model_dump(mode="json", by_alias=True, exclude_none=True)

        assert dumped["farmerID"] == "F1"
        assert dumped["status"] == "PLANTED"
        assert Product.model_validate(dumped).batch_number == "B-2025-001"

    @pytest.mark.parametrize("overrides", [
        {"name": "x"},
        {"name": "x" * 101},
        {"batchNumber": ""},
        {"farmLocation": {"latitude": 1.0, "longitude": 2.0}},
        {"status": "RECALLED"},
        {"qrCode": "data:image/png;base64,AAAA"},
    ])
    def test_invalid_product_requests(self, product_payload, overrides):
        with pytest.raises(PydanticValidationError):
            CreateProductRequest.model_validate_json(product_payload(**overrides))

    def test_product_request_requires_fields(self):
        with pytest.raises(PydanticValidationError) as exc_info:
            CreateProductRequest.model_validate({"name": "Rice"})
        missing = {err["loc"][0] for err in exc_info.value.errors()}
        assert {"batchNumber", "farmerID", "currentLocation"} <= missing

    def test_farmer_request(self, farmer_payload):
        body = json.loads(farmer_payload())
        del body["verified"]
        assert RegisterFarmerRequest.model_validate(body).email == "asha@example.org"

        with pytest.raises(PydanticValidationError):
            RegisterFarmerRequest.model_validate({**body, "email": "not-an-email"})
        with pytest.raises(PydanticValidationError):
            RegisterFarmerRequest.model_validate({**body, "verified": True})

    def test_step_request(self):
        body = {
            "stepType": "QUALITY_CHECK",
            "actor": "QA",
            "location": {"latitude": 1.0, "longitude": 2.0, "address": "Lab"},
            "description": "Moisture within range",
        }
        assert AddSupplyChainStepRequest.model_validate(body).step_type == "QUALITY_CHECK"

        with pytest.raises(PydanticValidationError):
            AddSupplyChainStepRequest.model_validate({})
        with pytest.raises(PydanticValidationError):
            AddSupplyChainStepRequest.model_validate({**body, "location": None})
