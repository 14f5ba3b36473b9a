from __future__ import annotations

import json
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping

from .models import (
    DEFAULT_MAX_INPUT_BYTES,
    DEFAULT_MAX_TOTAL_IMAGE_BYTES,
    DEFAULT_MAX_UNCOMPRESSED_ZIP_BYTES,
    ConversionOptions,
)

CONFIG_FILE = Path("config.toml")
DEFAULT_GEMINI_MODEL = "gemini-3-flash-preview"


@dataclass(slots=True)
class RuntimeConfig:
    max_input_bytes: int = DEFAULT_MAX_INPUT_BYTES
    max_total_image_bytes: int = DEFAULT_MAX_TOTAL_IMAGE_BYTES
    max_uncompressed_zip_bytes: int = DEFAULT_MAX_UNCOMPRESSED_ZIP_BYTES
    extract_images: bool = False
    strict: bool = False
    parallelism: int = 1
    enable_local_api: bool = False
    log_file: str | None = None


@dataclass(slots=True)
class DescriberConfig:
    provider: str = "gemini"
    model: str = DEFAULT_GEMINI_MODEL
    enabled: bool = True


@dataclass(slots=True)
class APIConfig:
    host: str = "127.0.0.1"
    port: int = 8000


@dataclass(slots=True)
class AppConfig:
    runtime: RuntimeConfig = field(default_factory=RuntimeConfig)
    describer: DescriberConfig = field(default_factory=DescriberConfig)
    api: APIConfig = field(default_factory=APIConfig)

    def to_options(self) -> ConversionOptions:
        return ConversionOptions(
            extract_images=self.runtime.extract_images,
            max_total_image_bytes=self.runtime.max_total_image_bytes,
            max_input_bytes=self.runtime.max_input_bytes,
            max_uncompressed_zip_bytes=self.runtime.max_uncompressed_zip_bytes,
            strict=self.runtime.strict,
        )


def _read_toml(path: Path) -> Mapping[str, object]:
    if not path.exists():
        return {}
    with path.open("rb") as handle:
        return tomllib.load(handle)


def _section(raw: Mapping[str, object], name: str) -> Mapping[str, object] | None:
    value = raw.get(name)
    return value if isinstance(value, Mapping) else None


def _build_runtime(data: Mapping[str, object] | None) -> RuntimeConfig:
    if not data:
        return RuntimeConfig()
    log_file = data.get("log_file")
    return RuntimeConfig(
        max_input_bytes=int(data.get("max_input_bytes", DEFAULT_MAX_INPUT_BYTES)),
        max_total_image_bytes=int(data.get("max_total_image_bytes", DEFAULT_MAX_TOTAL_IMAGE_BYTES)),
        max_uncompressed_zip_bytes=int(
            data.get("max_uncompressed_zip_bytes", DEFAULT_MAX_UNCOMPRESSED_ZIP_BYTES)
        ),
        extract_images=bool(data.get("extract_images", False)),
        strict=bool(data.get("strict", False)),
        parallelism=max(1, int(data.get("parallelism", 1))),
        enable_local_api=bool(data.get("enable_local_api", False)),
        log_file=str(log_file) if log_file else None,
    )


def _build_describer(data: Mapping[str, object] | None) -> DescriberConfig:
    if not data:
        return DescriberConfig()
    provider = str(data.get("provider", "gemini"))
    if provider != "gemini":
        raise ValueError(f"Unsupported describer provider: {provider!r}")
    return DescriberConfig(
        provider=provider,
        model=str(data.get("model", DEFAULT_GEMINI_MODEL)),
        enabled=bool(data.get("enabled", True)),
    )


def _build_api(data: Mapping[str, object] | None) -> APIConfig:
    if not data:
        return APIConfig()
    return APIConfig(host=str(data.get("host", "127.0.0.1")), port=int(data.get("port", 8000)))


def load_config(path: Path | None = None) -> AppConfig:
    path = path or CONFIG_FILE
    raw = _read_toml(path)
    return AppConfig(
        runtime=_build_runtime(_section(raw, "runtime")),
        describer=_build_describer(_section(raw, "describer")),
        api=_build_api(_section(raw, "api")),
    )


def dump_config(config: AppConfig) -> str:
    payload = {
        "runtime": {
            "max_input_bytes": config.runtime.max_input_bytes,
            "max_total_image_bytes": config.runtime.max_total_image_bytes,
            "max_uncompressed_zip_bytes": config.runtime.max_uncompressed_zip_bytes,
            "extract_images": config.runtime.extract_images,
            "strict": config.runtime.strict,
            "parallelism": config.runtime.parallelism,
            "enable_local_api": config.runtime.enable_local_api,
            "log_file": config.runtime.log_file,
        },
        "describer": {
            "provider": config.describer.provider,
            "model": config.describer.model,
            "enabled": config.describer.enabled,
        },
        "api": {
            "host": config.api.host,
            "port": config.api.port,
        },
    }
    return json.dumps(payload, indent=2)


__all__ = [
    "APIConfig",
    "AppConfig",
    "DescriberConfig",
    "RuntimeConfig",
    "dump_config",
    "load_config",
]
