# -*- coding: utf-8 -*-
"""
AgriChain Ledger Data Models

Pydantic v2 data models for the records held in world state. Python
attributes are snake_case; the persisted JSON field names are the
camelCase aliases below and must not change, since existing stored
records are read back through these models.

Models:
    - Enumerations: ProductStatus, EntityKind
    - Value objects: Location
    - Records: SupplyChainStep, Product, Farmer, Certificate
    - Request models: CreateProductRequest, RegisterFarmerRequest,
      AddSupplyChainStepRequest

Parsing rules shared by all records:
    - Unknown JSON fields are ignored.
    - ``null`` list/map fields read as empty.
    - ``null`` or missing timestamps read as the zero time
      (0001-01-01T00:00:00Z); naive timestamps are taken as UTC.
    - ``null`` locations read as the zero Location.

Author: AgriChain Platform Team
Status: Production Ready
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    field_validator,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

#: Zero value for unset timestamps, as serialized by existing ledgers.
ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)


def _zero_time_if_null(value: Any) -> Any:
    if value is None or value == "":
        return ZERO_TIME
    return value


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# =============================================================================
# Enumerations
# =============================================================================


class ProductStatus(str, Enum):
    """Known custody/lifecycle statuses of a product.

    A stored status is a free string; these are the values the ledger
    recognises. Transitions are not constrained to a fixed order and
    every transition is recorded as a supply chain step.
    """

    PLANTED = "PLANTED"
    HARVESTED = "HARVESTED"
    PROCESSED = "PROCESSED"
    IN_TRANSIT = "IN_TRANSIT"
    DELIVERED = "DELIVERED"
    SOLD = "SOLD"

    @classmethod
    def is_known(cls, value: str) -> bool:
        """Return True if value names one of the known statuses."""
        return any(value == status.value for status in cls)


class EntityKind(str, Enum):
    """Kinds of record kept in world state."""

    PRODUCT = "product"
    FARMER = "farmer"
    CERTIFICATE = "certificate"


# =============================================================================
# Value objects
# =============================================================================


class _LedgerModel(BaseModel):
    """Base configuration shared by every persisted model."""

    model_config = ConfigDict(
        populate_by_name=True,
        extra="ignore",
        use_enum_values=False,
    )


class Location(_LedgerModel):
    """Geographical position with a free-form address.

    The zero value ``Location()`` is (0.0, 0.0, "").
    """

    latitude: float = Field(default=0.0, alias="latitude")
    longitude: float = Field(default=0.0, alias="longitude")
    address: str = Field(default="", alias="address")

    def is_zero(self) -> bool:
        """Return True when this is the zero-value location."""
        return self == Location()


def _zero_location_if_null(value: Any) -> Any:
    if value is None:
        return Location()
    return value


# =============================================================================
# Records
# =============================================================================


class SupplyChainStep(_LedgerModel):
    """One immutable audit step in a product's custody history.

    Identity is ``<productID>-<ordinal>`` where ordinal is the zero-based
    position in the product's step sequence at the time it was appended.
    ``id`` and ``timestamp`` are always assigned by the ledger.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )

    id: str = Field(default="", alias="id")
    step_type: str = Field(default="", alias="stepType")
    actor: str = Field(default="", alias="actor")
    location: Location = Field(default_factory=Location, alias="location")
    timestamp: datetime = Field(default=ZERO_TIME, alias="timestamp")
    description: str = Field(default="", alias="description")
    metadata: Dict[str, str] = Field(default_factory=dict, alias="metadata")

    @field_validator("location", mode="before")
    @classmethod
    def _null_location(cls, v: Any) -> Any:
        return _zero_location_if_null(v)

    @field_validator("timestamp", mode="before")
    @classmethod
    def _null_timestamp(cls, v: Any) -> Any:
        return _zero_time_if_null(v)

    @field_validator("timestamp")
    @classmethod
    def _utc_timestamp(cls, v: datetime) -> datetime:
        return _as_utc(v)

    @field_validator("metadata", mode="before")
    @classmethod
    def _null_metadata(cls, v: Any) -> Any:
        return {} if v is None else v


class Product(_LedgerModel):
    """An agricultural product tracked through the supply chain.

    ``id`` is caller-supplied and immutable once created. ``status`` is
    kept as stored; it is usually, but not necessarily, a ProductStatus.
    ``supply_chain_steps`` is append-only and ``updated_at`` never
    decreases; both are maintained by the product ledger engine.
    """

    id: str = Field(..., alias="id")
    name: str = Field(default="", alias="name")
    batch_number: str = Field(default="", alias="batchNumber")
    farmer_id: str = Field(default="", alias="farmerID")
    farm_location: Location = Field(default_factory=Location, alias="farmLocation")
    planting_date: datetime = Field(default=ZERO_TIME, alias="plantingDate")
    harvest_date: datetime = Field(default=ZERO_TIME, alias="harvestDate")
    quality: str = Field(default="", alias="quality")
    certifications: List[str] = Field(default_factory=list, alias="certifications")
    current_owner: str = Field(default="", alias="currentOwner")
    current_location: Location = Field(
        default_factory=Location, alias="currentLocation",
    )
    status: str = Field(default=ProductStatus.PLANTED.value, alias="status")
    supply_chain_steps: List[SupplyChainStep] = Field(
        default_factory=list, alias="supplyChainSteps",
    )
    ipfs_hash: str = Field(default="", alias="ipfsHash")
    qr_code: str = Field(default="", alias="qrCode")
    created_at: datetime = Field(default=ZERO_TIME, alias="createdAt")
    updated_at: datetime = Field(default=ZERO_TIME, alias="updatedAt")

    @field_validator("farm_location", "current_location", mode="before")
    @classmethod
    def _null_location(cls, v: Any) -> Any:
        return _zero_location_if_null(v)

    @field_validator(
        "planting_date", "harvest_date", "created_at", "updated_at",
        mode="before",
    )
    @classmethod
    def _null_timestamp(cls, v: Any) -> Any:
        return _zero_time_if_null(v)

    @field_validator(
        "planting_date", "harvest_date", "created_at", "updated_at",
    )
    @classmethod
    def _utc_timestamp(cls, v: datetime) -> datetime:
        return _as_utc(v)

    @field_validator("certifications", "supply_chain_steps", mode="before")
    @classmethod
    def _null_list(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("status", mode="before")
    @classmethod
    def _default_status(cls, v: Any) -> Any:
        if v is None or v == "":
            return ProductStatus.PLANTED.value
        if isinstance(v, Enum):
            return v.value
        return v

    @property
    def step_count(self) -> int:
        """Number of supply chain steps recorded so far."""
        return len(self.supply_chain_steps)


class Farmer(_LedgerModel):
    """A registered farmer. Write-once: no mutation path exists."""

    id: str = Field(..., alias="id")
    name: str = Field(default="", alias="name")
    email: str = Field(default="", alias="email")
    phone: str = Field(default="", alias="phone")
    farm_location: Location = Field(default_factory=Location, alias="farmLocation")
    certifications: List[str] = Field(default_factory=list, alias="certifications")
    verified: bool = Field(default=False, alias="verified")
    metadata: Dict[str, str] = Field(default_factory=dict, alias="metadata")
    created_at: datetime = Field(default=ZERO_TIME, alias="createdAt")

    @field_validator("farm_location", mode="before")
    @classmethod
    def _null_location(cls, v: Any) -> Any:
        return _zero_location_if_null(v)

    @field_validator("created_at", mode="before")
    @classmethod
    def _null_timestamp(cls, v: Any) -> Any:
        return _zero_time_if_null(v)

    @field_validator("created_at")
    @classmethod
    def _utc_timestamp(cls, v: datetime) -> datetime:
        return _as_utc(v)

    @field_validator("certifications", mode="before")
    @classmethod
    def _null_list(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("metadata", mode="before")
    @classmethod
    def _null_metadata(cls, v: Any) -> Any:
        return {} if v is None else v


class Certificate(_LedgerModel):
    """A quality or organic certificate linked to a product.

    ``status`` is a free-form string set by the issuer.
    """

    id: str = Field(..., alias="id")
    product_id: str = Field(default="", alias="productID")
    type: str = Field(default="", alias="type")
    issued_by: str = Field(default="", alias="issuedBy")
    issued_date: datetime = Field(default=ZERO_TIME, alias="issuedDate")
    valid_until: datetime = Field(default=ZERO_TIME, alias="validUntil")
    ipfs_hash: str = Field(default="", alias="ipfsHash")
    status: str = Field(default="", alias="status")

    @field_validator("issued_date", "valid_until", mode="before")
    @classmethod
    def _null_timestamp(cls, v: Any) -> Any:
        return _zero_time_if_null(v)

    @field_validator("issued_date", "valid_until")
    @classmethod
    def _utc_timestamp(cls, v: datetime) -> datetime:
        return _as_utc(v)


# =============================================================================
# Request Models
# =============================================================================


class LocationRequest(BaseModel):
    """Location supplied in an HTTP request; every field is required."""

    model_config = ConfigDict(extra="forbid")

    latitude: float = Field(..., description="Latitude in decimal degrees")
    longitude: float = Field(..., description="Longitude in decimal degrees")
    address: str = Field(..., min_length=1, description="Postal or farm address")


class CreateProductRequest(BaseModel):
    """Request body for registering a new product.

    Attributes:
        id: Optional caller-chosen id; one is generated when omitted.
        name: Product name, 2 to 100 characters.
        batch_number: Harvest or packing batch reference.
        farmer_id: Id of the farmer who grew the product.
        farm_location: Where the product was grown.
        planting_date: When the crop was planted.
        harvest_date: When the crop was (or will be) harvested.
        quality: Quality grade.
        certifications: Certificate ids held for this product.
        current_owner: Party holding the product at registration.
        current_location: Where the product is at registration.
        status: Initial status; PLANTED when omitted.
    """

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    id: Optional[str] = Field(None, min_length=1)
    name: str = Field(..., min_length=2, max_length=100)
    batch_number: str = Field(..., min_length=1, alias="batchNumber")
    farmer_id: str = Field(..., min_length=1, alias="farmerID")
    farm_location: LocationRequest = Field(..., alias="farmLocation")
    planting_date: datetime = Field(..., alias="plantingDate")
    harvest_date: datetime = Field(..., alias="harvestDate")
    quality: str = Field(..., min_length=1)
    certifications: List[str] = Field(default_factory=list)
    current_owner: str = Field(..., min_length=1, alias="currentOwner")
    current_location: LocationRequest = Field(..., alias="currentLocation")
    status: Optional[ProductStatus] = Field(None)


class RegisterFarmerRequest(BaseModel):
    """Request body for registering a farmer.

    ``verified`` is not accepted; farmers registered this way start
    unverified.
    """

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    id: Optional[str] = Field(None, min_length=1)
    name: str = Field(..., min_length=2, max_length=100)
    email: EmailStr = Field(...)
    phone: str = Field(..., min_length=1)
    farm_location: LocationRequest = Field(..., alias="farmLocation")
    certifications: List[str] = Field(default_factory=list)
    metadata: Dict[str, str] = Field(default_factory=dict)


class AddSupplyChainStepRequest(BaseModel):
    """Request body for appending a supply chain step."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    step_type: str = Field(..., min_length=1, alias="stepType")
    actor: str = Field(..., min_length=1)
    location: LocationRequest = Field(...)
    description: str = Field(..., min_length=1)
    metadata: Dict[str, str] = Field(default_factory=dict)


__all__ = [
    "ZERO_TIME",
    "ProductStatus",
    "EntityKind",
    "Location",
    "SupplyChainStep",
    "Product",
    "Farmer",
    "Certificate",
    "LocationRequest",
    "CreateProductRequest",
    "RegisterFarmerRequest",
    "AddSupplyChainStepRequest",
]
