from __future__ import annotations

from pydantic import BaseModel

from ..images import guess_image_mime
from ..models import ConversionResult


class HealthStatus(BaseModel):
    status: str
    version: str


class WarningModel(BaseModel):
    code: str
    message: str
    location: str | None = None


class ImageModel(BaseModel):
    filename: str
    mime_type: str
    size: int


class ConversionResponse(BaseModel):
    markdown: str
    title: str | None = None
    warnings: list[WarningModel] = []
    images: list[ImageModel] = []

    @classmethod
    def from_result(cls, result: ConversionResult) -> "ConversionResponse":
        return cls(
            markdown=result.markdown,
            title=result.title,
            warnings=[WarningModel(**warning.to_dict()) for warning in result.warnings],
            images=[
                ImageModel(filename=filename, mime_type=guess_image_mime(data, filename), size=len(data))
                for filename, data in result.images
            ],
        )


__all__ = ["ConversionResponse", "HealthStatus", "ImageModel", "WarningModel"]
