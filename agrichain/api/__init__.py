# -*- coding: utf-8 -*-
"""AgriChain HTTP API (FastAPI)."""

from agrichain.api.router import create_router

__all__ = ["create_router"]
