"""FastAPI dependency providers reading what ``create_app`` stored on the app."""

from __future__ import annotations

from typing import Any

from fastapi import HTTPException, Request

from ..config import AppConfig
from ..core import ConversionService


def _app_state(request: Request, name: str) -> Any:
    value = getattr(request.app.state, name, None)
    if value is None:
        raise HTTPException(status_code=503, detail=f"{name.upper()}_UNAVAILABLE")
    return value


def get_config(request: Request) -> AppConfig:
    return _app_state(request, "config")


def get_service(request: Request) -> ConversionService:
    return _app_state(request, "service")


__all__ = ["get_config", "get_service"]
