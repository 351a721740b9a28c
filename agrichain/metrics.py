# -*- coding: utf-8 -*-
"""
Prometheus Metrics - AgriChain Ledger

9 Prometheus metrics for ledger monitoring. Collection can be switched
off at runtime (``AGRICHAIN_ENABLE_METRICS=false``), in which case every
helper below is a no-op.

Metrics:
    1. agrichain_products_created_total (Counter)
    2. agrichain_status_updates_total (Counter, labels: status)
    3. agrichain_steps_appended_total (Counter, labels: source)
    4. agrichain_farmers_created_total (Counter)
    5. agrichain_certificates_written_total (Counter, labels: mode)
    6. agrichain_queries_total (Counter, labels: mode)
    7. agrichain_operation_duration_seconds (Histogram, labels: operation)
    8. agrichain_errors_total (Counter, labels: error_type)
    9. agrichain_ledger_records_total (Counter, labels: kind)

Author: AgriChain Platform Team
Status: Production Ready
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from typing import Iterator

from prometheus_client import Counter, Histogram

from agrichain.models import ProductStatus

logger = logging.getLogger(__name__)

_enabled = True


def set_metrics_enabled(enabled: bool) -> None:
    """Turn metric collection on or off."""
    global _enabled
    _enabled = enabled
    logger.info("AgriChain metrics %s", "enabled" if enabled else "disabled")


def metrics_enabled() -> bool:
    return _enabled


# ---------------------------------------------------------------------------
# Metric definitions
# ---------------------------------------------------------------------------

# 1. Products created
agri_products_created_total = Counter(
    "agrichain_products_created_total",
    "Total products created on the ledger",
)

# 2. Status transitions by target status
agri_status_updates_total = Counter(
    "agrichain_status_updates_total",
    "Total product status transitions",
    labelnames=["status"],
)

# 3. Supply chain steps appended by source (status_update, manual)
agri_steps_appended_total = Counter(
    "agrichain_steps_appended_total",
    "Total supply chain steps appended",
    labelnames=["source"],
)

# 4. Farmers created
agri_farmers_created_total = Counter(
    "agrichain_farmers_created_total",
    "Total farmers registered on the ledger",
)

# 5. Certificate writes by mode (create, overwrite)
agri_certificates_written_total = Counter(
    "agrichain_certificates_written_total",
    "Total certificate writes",
    labelnames=["mode"],
)

# 6. Secondary-index queries by mode (selector, scan)
agri_queries_total = Counter(
    "agrichain_queries_total",
    "Total secondary-index queries executed",
    labelnames=["mode"],
)

# 7. Operation duration
agri_operation_duration_seconds = Histogram(
    "agrichain_operation_duration_seconds",
    "Ledger operation duration in seconds",
    labelnames=["operation"],
    buckets=(
        0.0005, 0.001, 0.0025, 0.005, 0.01, 0.025,
        0.05, 0.1, 0.25, 0.5, 1.0, 2.5,
    ),
)

# 8. Errors by type
agri_errors_total = Counter(
    "agrichain_errors_total",
    "Total ledger operation errors",
    labelnames=["error_type"],
)

# 9. Records written per kind during this process lifetime
agri_ledger_records_total = Counter(
    "agrichain_ledger_records_total",
    "Records created on the ledger by this process",
    labelnames=["kind"],
)


# ---------------------------------------------------------------------------
# Helper functions
# ---------------------------------------------------------------------------


def record_product_created() -> None:
    if not _enabled:
        return
    agri_products_created_total.inc()
    agri_ledger_records_total.labels(kind="product").inc()


def record_status_update(status: str) -> None:
    """Record a status transition.

    Unrecognised statuses share the ``other`` label.

    Args:
        status: Target status value.
    """
    if not _enabled:
        return
    label = status if ProductStatus.is_known(status) else "other"
    agri_status_updates_total.labels(status=label).inc()


def record_step_appended(source: str) -> None:
    """Record an appended supply chain step.

    Args:
        source: ``status_update`` or ``manual``.
    """
    if not _enabled:
        return
    agri_steps_appended_total.labels(source=source).inc()


def record_farmer_created() -> None:
    if not _enabled:
        return
    agri_farmers_created_total.inc()
    agri_ledger_records_total.labels(kind="farmer").inc()


def record_certificate_written(overwrite: bool) -> None:
    """Record a certificate write.

    Args:
        overwrite: Whether an existing certificate was replaced.
    """
    if not _enabled:
        return
    agri_certificates_written_total.labels(
        mode="overwrite" if overwrite else "create",
    ).inc()
    if not overwrite:
        agri_ledger_records_total.labels(kind="certificate").inc()


def record_query(mode: str) -> None:
    """Record a secondary-index query.

    Args:
        mode: ``selector`` or ``scan``.
    """
    if not _enabled:
        return
    agri_queries_total.labels(mode=mode).inc()


def observe_duration(operation: str, duration: float) -> None:
    """Record an operation duration.

    Args:
        operation: Operation name (e.g. ``create_product``).
        duration: Duration in seconds.
    """
    if not _enabled:
        return
    agri_operation_duration_seconds.labels(operation=operation).observe(duration)


def record_error(error_type: str) -> None:
    """Record a failed operation.

    Args:
        error_type: Exception class name.
    """
    if not _enabled:
        return
    agri_errors_total.labels(error_type=error_type).inc()


@contextmanager
def track_operation(operation: str) -> Iterator[None]:
    """Time one ledger operation and count it as an error if it raises.

    Args:
        operation: Operation name used as the histogram label.
    """
    start = time.monotonic()
    try:
        yield
    except Exception as exc:
        record_error(type(exc).__name__)
        raise
    finally:
        observe_duration(operation, time.monotonic() - start)


__all__ = [
    "set_metrics_enabled",
    "metrics_enabled",
    "agri_products_created_total",
    "agri_status_updates_total",
    "agri_steps_appended_total",
    "agri_farmers_created_total",
    "agri_certificates_written_total",
    "agri_queries_total",
    "agri_operation_duration_seconds",
    "agri_errors_total",
    "agri_ledger_records_total",
    "record_product_created",
    "record_status_update",
    "record_step_appended",
    "record_farmer_created",
    "record_certificate_written",
    "record_query",
    "observe_duration",
    "record_error",
    "track_operation",
]
