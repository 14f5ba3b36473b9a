from __future__ import annotations

from fastapi import FastAPI

from .. import __version__
from ..config import AppConfig
from ..core import ConversionService
from ..models import AsyncImageDescriber
from ..settings import get_settings, load_app_config
from .routers import convert, health


def create_app(
    config: AppConfig | None = None,
    *,
    require_enabled: bool = True,
    async_describer: AsyncImageDescriber | None = None,
) -> FastAPI:
    settings = get_settings()
    config = config or load_app_config(settings)
    if require_enabled and not config.runtime.enable_local_api:
        raise RuntimeError("Local API is disabled. Enable it via config.runtime.enable_local_api")
    if async_describer is None and settings.gemini_api_key and config.describer.enabled:
        from ..gemini import AsyncGeminiDescriber

        async_describer = AsyncGeminiDescriber(settings.gemini_api_key, config.describer.model)

    app = FastAPI(title="anytomd", version=__version__)
    app.state.config = config
    app.state.service = ConversionService(config, async_describer=async_describer)

    app.include_router(health.router)
    app.include_router(convert.router)
    return app


__all__ = ["create_app"]
