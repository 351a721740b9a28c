# -*- coding: utf-8 -*-
"""
Certificate Registry Engine - AgriChain Ledger

Stores quality and organic certificates linked to products.

Unlike products and farmers, a certificate write is unconditional: adding
a certificate whose id is already present replaces the stored one. No
timestamps are stamped; issuedDate and validUntil are whatever the issuer
supplied. The product a certificate names is not required to exist.

Author: AgriChain Platform Team
Status: Production Ready
"""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, Optional

from agrichain.exceptions import NotFoundError
from agrichain.metrics import record_certificate_written, track_operation
from agrichain.models import Certificate, EntityKind
from agrichain.provenance import ProvenanceTracker, compute_hash
from agrichain.world_state import WorldStateAccessor, decode_record

logger = logging.getLogger(__name__)

_KIND = EntityKind.CERTIFICATE


class CertificateRegistryEngine:
    """Certificate storage engine with overwrite-on-create semantics.

    Attributes:
        _accessor: Typed world-state accessor.
        _provenance: Optional ProvenanceTracker.
        _stats: Write counters by mode.
    """

    def __init__(
        self,
        accessor: WorldStateAccessor,
        provenance: Optional[ProvenanceTracker] = None,
    ) -> None:
        self._accessor = accessor
        self._provenance = provenance
        self._stats: Dict[str, int] = {
            "certificates_created": 0,
            "certificates_overwritten": 0,
        }
        logger.info("CertificateRegistryEngine initialized")

    def add_certificate(self, cert_data: str) -> Certificate:
        """Store a certificate, replacing any certificate with the same id.

        Args:
            cert_data: Certificate JSON using the persisted field names.

        Returns:
            The certificate as written.

        Raises:
            ValidationError: If the payload cannot be parsed.
        """
        start_time = time.monotonic()
        with track_operation("add_certificate"):
            cert = decode_record(Certificate, cert_data, entity_kind=_KIND.value)
            version = self._accessor.write(_KIND, cert.id, cert)

        # Version 1 means the key was absent before this write.
        overwrite = version > 1
        if overwrite:
            self._stats["certificates_overwritten"] += 1
        else:
            self._stats["certificates_created"] += 1

        if self._provenance is not None:
            self._provenance.record(
                entity_kind=_KIND.value,
                entity_id=cert.id,
                action="overwrite" if overwrite else "create",
                data_hash=compute_hash(cert),
                actor=cert.issued_by or None,
            )
        record_certificate_written(overwrite)

        elapsed_ms = (time.monotonic() - start_time) * 1000
        logger.info(
            "%s certificate %s for product %s: type=%s (%.1f ms)",
            "Overwrote" if overwrite else "Stored",
            cert.id, cert.product_id, cert.type, elapsed_ms,
        )
        return cert

    def get_certificate(self, cert_id: str) -> Certificate:
        """Return the certificate stored under cert_id.

        Raises:
            NotFoundError: If the certificate does not exist.
            ValidationError: If the stored record is corrupt.
        """
        with track_operation("get_certificate"):
            read = self._accessor.read(_KIND, cert_id, Certificate)
            if not read.found:
                logger.debug("Certificate %s not found", cert_id)
                raise NotFoundError(
                    message=f"the certificate {cert_id} does not exist",
                    entity_kind=_KIND.value,
                    entity_id=cert_id,
                )
            return read.record

    def get_statistics(self) -> Dict[str, Any]:
        return dict(self._stats)


__all__ = ["CertificateRegistryEngine"]
