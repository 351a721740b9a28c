# -*- coding: utf-8 -*-
"""World-state backends and the config-driven factory."""

from __future__ import annotations

from agrichain.backends.memory import MemoryWorldState
from agrichain.backends.sql import SQLWorldState
from agrichain.config import AgriChainConfig
from agrichain.world_state import WorldStateStore


def create_store(config: AgriChainConfig) -> WorldStateStore:
    """Build the world-state backend named by ``config.backend``."""
    if config.backend == "sql":
        return SQLWorldState(config.database_url)
    return MemoryWorldState()


__all__ = [
    "MemoryWorldState",
    "SQLWorldState",
    "create_store",
]
