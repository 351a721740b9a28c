# -*- coding: utf-8 -*-
"""
AgriChain Ledger Configuration

Centralized configuration for the AgriChain supply-chain ledger covering:
- World-state backend selection and database URL
- Key namespacing (kind-prefixed keys vs. legacy flat keys)
- Secondary-index query behaviour (scan fallback, page limit)
- Provenance and metrics toggles
- Logging level
- HTTP router prefix

All settings can be overridden via environment variables with the
``AGRICHAIN_`` prefix (e.g. ``AGRICHAIN_BACKEND=sql``).

Example:
    >>> from agrichain.config import get_config
    >>> cfg = get_config()
    >>> print(cfg.backend, cfg.key_namespacing)

Author: AgriChain Platform Team
Status: Production Ready
"""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass
from typing import Any, Optional

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Environment variable prefix
# ---------------------------------------------------------------------------

_ENV_PREFIX = "AGRICHAIN_"

_VALID_BACKENDS = ("memory", "sql")


# ---------------------------------------------------------------------------
# AgriChainConfig
# ---------------------------------------------------------------------------


@dataclass
class AgriChainConfig:
    """Complete configuration for the AgriChain ledger.

    Attributes:
        backend: World-state backend, ``memory`` or ``sql``.
        database_url: SQLAlchemy URL used by the ``sql`` backend.
        key_namespacing: Prefix world-state keys by entity kind.
        query_fallback_enabled: Scan-and-filter when the backend has no
            native selector queries. When disabled such queries fail.
        query_page_limit: Maximum records materialized per query (0 = all).
        enable_provenance: Record a SHA-256 chained audit log of writes.
        enable_metrics: Emit Prometheus metrics.
        log_level: Logging level applied to the ``agrichain`` logger.
        api_prefix: Mount prefix for the FastAPI router.
    """

    # -- World state ---------------------------------------------------------
    backend: str = "memory"
    database_url: str = "sqlite:///:memory:"
    key_namespacing: bool = True

    # -- Queries -------------------------------------------------------------
    query_fallback_enabled: bool = True
    query_page_limit: int = 0

    # -- Observability -------------------------------------------------------
    enable_provenance: bool = True
    enable_metrics: bool = True
    log_level: str = "INFO"

    # -- HTTP ----------------------------------------------------------------
    api_prefix: str = "/api/v1/agrichain"

    def __post_init__(self) -> None:
        if self.backend not in _VALID_BACKENDS:
            raise ValueError(
                f"backend must be one of {_VALID_BACKENDS}, got '{self.backend}'"
            )
        if self.query_page_limit < 0:
            raise ValueError(
                f"query_page_limit must be >= 0, got {self.query_page_limit}"
            )

    # ------------------------------------------------------------------
    # Factory helpers
    # ------------------------------------------------------------------

    @classmethod
    def from_env(cls) -> AgriChainConfig:
        """Build an AgriChainConfig from environment variables.

        Every field can be overridden via ``AGRICHAIN_<FIELD_UPPER>``.
        Boolean values accept ``true/1/yes`` (case-insensitive).
        Integer values are parsed via ``int()``.

        Returns:
            Populated AgriChainConfig instance.
        """
        prefix = _ENV_PREFIX

        def _env(name: str, default: Any = None) -> Optional[str]:
            return os.environ.get(f"{prefix}{name}", default)

        def _bool(name: str, default: bool) -> bool:
            val = _env(name)
            if val is None:
                return default
            return val.lower() in ("true", "1", "yes")

        def _int(name: str, default: int) -> int:
            val = _env(name)
            if val is None:
                return default
            try:
                return int(val)
            except ValueError:
                logger.warning(
                    "Invalid integer for %s%s=%s, using default %d",
                    prefix, name, val, default,
                )
                return default

        def _str(name: str, default: str) -> str:
            val = _env(name)
            if val is None:
                return default
            return val

        backend = _str("BACKEND", cls.backend).lower()
        if backend not in _VALID_BACKENDS:
            logger.warning(
                "Invalid backend %s%s=%s, using default %s",
                prefix, "BACKEND", backend, cls.backend,
            )
            backend = cls.backend

        page_limit = _int("QUERY_PAGE_LIMIT", cls.query_page_limit)
        if page_limit < 0:
            logger.warning(
                "Negative %sQUERY_PAGE_LIMIT=%d, using default %d",
                prefix, page_limit, cls.query_page_limit,
            )
            page_limit = cls.query_page_limit

        config = cls(
            backend=backend,
            database_url=_str("DATABASE_URL", cls.database_url),
            key_namespacing=_bool("KEY_NAMESPACING", cls.key_namespacing),
            query_fallback_enabled=_bool(
                "QUERY_FALLBACK_ENABLED", cls.query_fallback_enabled,
            ),
            query_page_limit=page_limit,
            enable_provenance=_bool(
                "ENABLE_PROVENANCE", cls.enable_provenance,
            ),
            enable_metrics=_bool("ENABLE_METRICS", cls.enable_metrics),
            log_level=_str("LOG_LEVEL", cls.log_level).upper(),
            api_prefix=_str("API_PREFIX", cls.api_prefix),
        )

        logger.info(
            "AgriChainConfig loaded: backend=%s, namespacing=%s, "
            "query_fallback=%s, page_limit=%d, provenance=%s, metrics=%s",
            config.backend,
            config.key_namespacing,
            config.query_fallback_enabled,
            config.query_page_limit,
            config.enable_provenance,
            config.enable_metrics,
        )
        return config


# ---------------------------------------------------------------------------
# Thread-safe singleton accessor
# ---------------------------------------------------------------------------

_config_instance: Optional[AgriChainConfig] = None
_config_lock = threading.Lock()


def get_config() -> AgriChainConfig:
    """Return the singleton AgriChainConfig, creating from env if needed."""
    global _config_instance
    if _config_instance is None:
        with _config_lock:
            if _config_instance is None:
                _config_instance = AgriChainConfig.from_env()
    return _config_instance


def set_config(config: AgriChainConfig) -> None:
    """Replace the singleton AgriChainConfig (useful for testing).

    Args:
        config: New configuration to install.
    """
    global _config_instance
    with _config_lock:
        _config_instance = config
    logger.info("AgriChainConfig replaced programmatically")


def reset_config() -> None:
    """Reset the singleton (primarily for test teardown)."""
    global _config_instance
    with _config_lock:
        _config_instance = None


__all__ = [
    "AgriChainConfig",
    "get_config",
    "set_config",
    "reset_config",
]
