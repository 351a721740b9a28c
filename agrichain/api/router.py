# -*- coding: utf-8 -*-
"""
AgriChain REST API Router

FastAPI router exposing the ledger operations over HTTP at prefix
``/api/v1/agrichain`` (configurable through ``AGRICHAIN_API_PREFIX``):

    POST   /products                      create a product (with its QR code)
    GET    /products                      query by farmer_id or status
    GET    /products/{id}                 get a product
    GET    /products/{id}/exists          existence check
    GET    /products/{id}/qr              traceability QR code
    PATCH  /products/{id}/status          status transition
    POST   /products/{id}/steps           append a supply chain step
    GET    /products/{id}/history         ordered supply chain steps
    POST   /farmers                       register a farmer
    GET    /farmers/{id}                  get a farmer
    GET    /farmers/{id}/products         products grown by a farmer
    POST   /certificates                  add (or overwrite) a certificate
    GET    /certificates/{id}             get a certificate
    GET    /provenance                    provenance trail
    GET    /statistics                    service statistics

Request bodies for creating products, farmers and steps are validated
against the request models in ``agrichain.models``; a body that does not
conform is rejected with 400.

Ledger exceptions map to HTTP status codes: ValidationError 400,
NotFoundError 404, ConflictError 409, QueryError 502, StoreError 503.
Error bodies carry ``retriable: true`` when re-sending the same request
may succeed.

Author: AgriChain Platform Team
Status: Production Ready
"""

from __future__ import annotations

import json
import logging
import uuid
from typing import Any, Dict, List, NoReturn, Optional

from fastapi import APIRouter, HTTPException, Query, Request

from agrichain.exceptions import (
    AgriChainException,
    ConflictError,
    NotFoundError,
    QueryError,
    StoreError,
    ValidationError,
    format_exception_chain,
    is_retriable,
)
from agrichain.models import (
    AddSupplyChainStepRequest,
    Certificate,
    CreateProductRequest,
    Farmer,
    Product,
    RegisterFarmerRequest,
    SupplyChainStep,
)
from agrichain.provenance import ProvenanceEntry
from agrichain.qr import creation_payload, qr_data_url
from agrichain.world_state import decode_record

logger = logging.getLogger(__name__)

_STATUS_CODES = (
    (ValidationError, 400),
    (NotFoundError, 404),
    (ConflictError, 409),
    (QueryError, 502),
    (StoreError, 503),
)


def status_code_for(exc: AgriChainException) -> int:
    """Return the HTTP status code for a ledger exception."""
    for exc_type, status_code in _STATUS_CODES:
        if isinstance(exc, exc_type):
            return status_code
    return 500


def _raise_http(exc: AgriChainException) -> NoReturn:
    status_code = status_code_for(exc)
    retriable = is_retriable(exc)
    if status_code >= 500:
        logger.error(
            "AgriChain request failed (retriable=%s):\n%s",
            retriable, format_exception_chain(exc),
        )
    detail = exc.to_dict()
    detail["retriable"] = retriable
    raise HTTPException(status_code=status_code, detail=detail) from exc


def _svc(request: Request) -> Any:
    from agrichain.setup import get_agrichain_service

    service = getattr(request.app.state, "agrichain_service", None)
    return service if service is not None else get_agrichain_service()


def _parse_body(model: Any, body: Dict[str, Any], kind: str) -> Dict[str, Any]:
    """Validate a request body and return it in persisted field names.

    Raises:
        ValidationError: If the body does not conform to model.
    """
    parsed = decode_record(
        model, json.dumps(body), entity_kind=kind, what="request body",
    )
    return parsed.model_dump(mode="json", by_alias=True, exclude_none=True)


def _location_arg(location: Any) -> str:
    if location is None or location == "":
        return ""
    if isinstance(location, str):
        return location
    return json.dumps(location)


def create_router(prefix: str = "/api/v1/agrichain") -> APIRouter:
    """Create the AgriChain API router.

    Args:
        prefix: Route prefix.

    Returns:
        FastAPI APIRouter with all AgriChain endpoints.
    """
    router = APIRouter(prefix=prefix, tags=["agrichain"])

    # ------------------------------------------------------------------
    # Products
    # ------------------------------------------------------------------

    @router.post("/products", response_model=Product, status_code=201)
    async def post_create_product(
        request: Request,
        body: Dict[str, Any],
    ) -> Product:
        """Create a product; an id is generated when none is given."""
        try:
            fields = _parse_body(CreateProductRequest, body, "product")
            payload = {"id": str(uuid.uuid4()), **fields}
            payload["qrCode"] = qr_data_url(creation_payload(payload))
            return _svc(request).create_product(json.dumps(payload))
        except AgriChainException as exc:
            _raise_http(exc)

    @router.get("/products", response_model=List[Product])
    async def get_query_products(
        request: Request,
        farmer_id: Optional[str] = Query(None),
        status: Optional[str] = Query(None),
    ) -> List[Product]:
        """Query products by farmer and/or status."""
        if farmer_id is None and status is None:
            raise HTTPException(
                status_code=400,
                detail="farmer_id or status query parameter is required",
            )
        try:
            if farmer_id is None:
                return _svc(request).query_products_by_status(status)
            if status is None:
                return _svc(request).query_products_by_farmer(farmer_id)
            return _svc(request).query_products_by_farmer_and_status(
                farmer_id, status,
            )
        except AgriChainException as exc:
            _raise_http(exc)

    @router.get("/products/{product_id}", response_model=Product)
    async def get_product(request: Request, product_id: str) -> Product:
        """Get a product by id."""
        try:
            return _svc(request).get_product(product_id)
        except AgriChainException as exc:
            _raise_http(exc)

    @router.get("/products/{product_id}/exists")
    async def get_product_exists(request: Request, product_id: str) -> Dict[str, Any]:
        try:
            exists = _svc(request).product_exists(product_id)
        except AgriChainException as exc:
            _raise_http(exc)
        return {"id": product_id, "exists": exists}

    @router.get("/products/{product_id}/qr")
    async def get_product_qr(request: Request, product_id: str) -> Dict[str, Any]:
        """QR code linking to the product's supply chain history."""
        try:
            product = _svc(request).get_product(product_id)
        except AgriChainException as exc:
            _raise_http(exc)
        base_url = str(request.base_url).rstrip("/")
        qr_data = {
            "productId": product.id,
            "batchNumber": product.batch_number,
            "farmerID": product.farmer_id,
            "name": product.name,
            "traceabilityUrl": f"{base_url}{prefix}/products/{product.id}/history",
        }
        return {"qrCode": qr_data_url(qr_data), "qrData": qr_data}

    @router.patch("/products/{product_id}/status", response_model=Product)
    async def patch_product_status(
        request: Request,
        product_id: str,
        body: Dict[str, Any],
    ) -> Product:
        """Move a product to a new status; status and actor are required."""
        status = body.get("status")
        actor = body.get("actor")
        if not status or not actor:
            raise HTTPException(
                status_code=400, detail="status and actor are required",
            )
        try:
            return _svc(request).update_product_status(
                product_id, str(status), _location_arg(body.get("location")),
                str(actor),
            )
        except AgriChainException as exc:
            _raise_http(exc)

    @router.post(
        "/products/{product_id}/steps",
        response_model=SupplyChainStep,
        status_code=201,
    )
    async def post_supply_chain_step(
        request: Request,
        product_id: str,
        body: Dict[str, Any],
    ) -> SupplyChainStep:
        """Append a supply chain step to a product."""
        try:
            fields = _parse_body(AddSupplyChainStepRequest, body, "product")
            return _svc(request).add_supply_chain_step(product_id, json.dumps(fields))
        except AgriChainException as exc:
            _raise_http(exc)

    @router.get(
        "/products/{product_id}/history",
        response_model=List[SupplyChainStep],
    )
    async def get_product_history(
        request: Request,
        product_id: str,
    ) -> List[SupplyChainStep]:
        """Get a product's supply chain steps in order."""
        try:
            return _svc(request).get_product_history(product_id)
        except AgriChainException as exc:
            _raise_http(exc)

    # ------------------------------------------------------------------
    # Farmers
    # ------------------------------------------------------------------

    @router.post("/farmers", response_model=Farmer, status_code=201)
    async def post_create_farmer(
        request: Request,
        body: Dict[str, Any],
    ) -> Farmer:
        """Register a farmer. Farmers registered over HTTP start unverified."""
        try:
            fields = _parse_body(RegisterFarmerRequest, body, "farmer")
            payload = {"id": str(uuid.uuid4()), **fields, "verified": False}
            return _svc(request).create_farmer(json.dumps(payload))
        except AgriChainException as exc:
            _raise_http(exc)

    @router.get("/farmers/{farmer_id}", response_model=Farmer)
    async def get_farmer(request: Request, farmer_id: str) -> Farmer:
        try:
            return _svc(request).get_farmer(farmer_id)
        except AgriChainException as exc:
            _raise_http(exc)

    @router.get("/farmers/{farmer_id}/products", response_model=List[Product])
    async def get_farmer_products(
        request: Request,
        farmer_id: str,
    ) -> List[Product]:
        """List the products whose farmerID is farmer_id."""
        try:
            return _svc(request).query_products_by_farmer(farmer_id)
        except AgriChainException as exc:
            _raise_http(exc)

    # ------------------------------------------------------------------
    # Certificates
    # ------------------------------------------------------------------

    @router.post("/certificates", response_model=Certificate, status_code=201)
    async def post_add_certificate(
        request: Request,
        body: Dict[str, Any],
    ) -> Certificate:
        """Add a certificate, replacing any certificate with the same id."""
        try:
            return _svc(request).add_certificate(json.dumps(body))
        except AgriChainException as exc:
            _raise_http(exc)

    @router.get("/certificates/{cert_id}", response_model=Certificate)
    async def get_certificate(request: Request, cert_id: str) -> Certificate:
        try:
            return _svc(request).get_certificate(cert_id)
        except AgriChainException as exc:
            _raise_http(exc)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    @router.get("/provenance", response_model=List[ProvenanceEntry])
    async def get_provenance(
        request: Request,
        entity_id: Optional[str] = Query(None),
        entity_kind: Optional[str] = Query(None),
        limit: int = Query(100, ge=1, le=1000),
    ) -> List[ProvenanceEntry]:
        """Get the provenance trail, newest last."""
        return _svc(request).get_provenance_trail(
            entity_id=entity_id, entity_kind=entity_kind, limit=limit,
        )

    @router.get("/statistics")
    async def get_statistics(request: Request) -> Dict[str, Any]:
        return _svc(request).get_statistics()

    return router


__all__ = ["create_router", "status_code_for"]
