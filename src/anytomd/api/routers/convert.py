from __future__ import annotations

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile

from ...config import AppConfig
from ...core import ConversionService
from ...exceptions import ConversionError
from ..dependencies import get_config, get_service
from ..schemas import ConversionResponse

router = APIRouter(tags=["conversion"])


@router.post("/convert", summary="Convert a single document")
async def convert_document(
    file: UploadFile = File(...),
    format_tag: str | None = Form(None, alias="format"),
    service: ConversionService = Depends(get_service),
    config: AppConfig = Depends(get_config),
) -> ConversionResponse:
    content = await file.read()
    _enforce_size_limit(content, config)
    source = file.filename or "upload"
    try:
        result = await service.convert_data_async(content, source, format_tag=format_tag or None)
    except ConversionError as exc:
        raise HTTPException(status_code=400, detail=exc.code) from exc
    return ConversionResponse.from_result(result)


def _enforce_size_limit(payload: bytes, config: AppConfig) -> None:
    if len(payload) > config.runtime.max_input_bytes:
        raise HTTPException(status_code=413, detail="INPUT_TOO_LARGE")


__all__ = ["router"]
