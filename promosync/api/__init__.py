"""Operator HTTP API."""

from promosync.api.sync_api import router

__all__ = ["router"]
