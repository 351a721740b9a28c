# -*- coding: utf-8 -*-
"""
Product QR Codes - AgriChain Ledger

Renders the traceability QR codes printed on product packaging. The code
encodes a small JSON document (product id, batch number, farmer id and,
for the on-demand code, a link to the product history) and is returned as
a PNG ``data:`` URL ready to embed in a page or label template.

Example:
    >>> url = qr_data_url({"productId": "P1", "batchNumber": "B1", "farmerID": "F1"})
    >>> url.startswith("data:image/png;base64,")
    True

Author: AgriChain Platform Team
Status: Production Ready
"""

from __future__ import annotations

import base64
import io
import json
import logging
from typing import Any, Dict

import qrcode

logger = logging.getLogger(__name__)

DATA_URL_PREFIX = "data:image/png;base64,"


def render_qr_png(data: str) -> bytes:
    """Render data as a PNG QR code image."""
    qr = qrcode.QRCode(
        version=1,
        error_correction=qrcode.constants.ERROR_CORRECT_L,
        box_size=10,
        border=4,
    )
    qr.add_data(data)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")

    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()


def qr_data_url(payload: Dict[str, Any]) -> str:
    """Encode payload as JSON and return its QR code as a PNG data URL.

    Args:
        payload: JSON-serializable document to encode.

    Returns:
        ``data:image/png;base64,...`` string.
    """
    png = render_qr_png(json.dumps(payload))
    logger.debug("Rendered QR code (%d bytes) for %s", len(png), payload)
    return DATA_URL_PREFIX + base64.b64encode(png).decode("ascii")


def creation_payload(product: Dict[str, Any]) -> Dict[str, Any]:
    """Return the document encoded on a product's label at creation."""
    return {
        "productId": product.get("id", ""),
        "batchNumber": product.get("batchNumber", ""),
        "farmerID": product.get("farmerID", ""),
    }


__all__ = [
    "DATA_URL_PREFIX",
    "render_qr_png",
    "qr_data_url",
    "creation_payload",
]
