from __future__ import annotations

import asyncio
import concurrent.futures
import logging
import time
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Sequence

from .adapters import get_adapter
from .config import AppConfig
from .detection import detect_by_extension, detect_format, extension_of
from .exceptions import ConversionError, InputTooLargeError, IoFailure, StrictModeError
from .images import resolve_images, resolve_images_async
from .logging import RunLogEntry, RunLogger, StageTimings
from .models import AsyncImageDescriber, ConversionOptions, ConversionResult, ImageDescriber

logger = logging.getLogger(__name__)


def _check_input_size(size: int, options: ConversionOptions) -> None:
    if size > options.max_input_bytes:
        raise InputTooLargeError(size, options.max_input_bytes)


def _enforce_strict(result: ConversionResult, options: ConversionOptions) -> None:
    if options.strict and result.warnings:
        raise StrictModeError(result.warnings[0])


def read_input(path: Path, options: ConversionOptions) -> bytes:
    try:
        _check_input_size(path.stat().st_size, options)
        return path.read_bytes()
    except OSError as exc:
        raise IoFailure(f"cannot read {path}: {exc.strerror or exc}") from exc


def dispatch_key(path: str | Path | None, data: bytes) -> str:
    """Extension or format tag used to pick a converter for ``data``.

    The path's own extension is kept whenever content sniffing agrees with
    it, so that converters keyed on a finer extension (``xlsm``, ``py``)
    still see it.
    """

    extension = extension_of(path)
    detected = detect_format(path, data)
    if detected is None or detected is detect_by_extension(extension):
        return extension
    return detected.value


def convert_bytes(
    data: bytes, extension: str, options: ConversionOptions | None = None
) -> ConversionResult:
    """Convert an in-memory document without format detection."""

    options = options or ConversionOptions()
    _check_input_size(len(data), options)
    adapter = get_adapter(extension)
    logger.debug("dispatching %d bytes tagged %r to %s", len(data), extension, type(adapter).__name__)
    response = adapter.parse(data, options)
    result = response.result
    result.markdown = resolve_images(result.markdown, response.pending, options, result)
    _enforce_strict(result, options)
    return result


def convert_file(path: str | Path, options: ConversionOptions | None = None) -> ConversionResult:
    """Read ``path``, detect its format and convert it."""

    options = options or ConversionOptions()
    path = Path(path)
    data = read_input(path, options)
    return convert_bytes(data, dispatch_key(path, data), options)


async def convert_bytes_async(
    data: bytes, extension: str, options: ConversionOptions | None = None
) -> ConversionResult:
    """Like :func:`convert_bytes`, describing images concurrently."""

    options = options or ConversionOptions()
    _check_input_size(len(data), options)
    adapter = get_adapter(extension)
    response = await asyncio.to_thread(adapter.parse, data, options)
    result = response.result
    result.markdown = await resolve_images_async(result.markdown, response.pending, options, result)
    _enforce_strict(result, options)
    return result


async def convert_file_async(
    path: str | Path, options: ConversionOptions | None = None
) -> ConversionResult:
    options = options or ConversionOptions()
    path = Path(path)
    data = await asyncio.to_thread(read_input, path, options)
    return await convert_bytes_async(data, dispatch_key(path, data), options)


@dataclass(slots=True)
class ConversionOutcome:
    source: str
    result: ConversionResult | None = None
    error: ConversionError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class ConversionService:
    """Runs conversions configured by an :class:`AppConfig`.

    Every call builds fresh options; the describer handles are shared and
    must tolerate concurrent use when ``convert_many`` runs in parallel.
    """

    def __init__(
        self,
        config: AppConfig,
        *,
        describer: ImageDescriber | None = None,
        async_describer: AsyncImageDescriber | None = None,
        run_log: Path | None = None,
    ) -> None:
        self._config = config
        self._describer = describer
        self._async_describer = async_describer
        log_path = run_log or config.runtime.log_file
        self._run_logger = RunLogger(Path(log_path)) if log_path else None

    @property
    def config(self) -> AppConfig:
        return self._config

    def options(self, **overrides: object) -> ConversionOptions:
        options = self._config.to_options()
        options.image_describer = self._describer
        options.async_image_describer = self._async_describer
        for name, value in overrides.items():
            setattr(options, name, value)
        return options

    def convert_data(
        self,
        data: bytes,
        source: str,
        *,
        format_tag: str | None = None,
        options: ConversionOptions | None = None,
    ) -> ConversionResult:
        """Convert bytes labelled ``source``, detecting the format unless forced."""

        return self._convert_timed(data, source, format_tag, options or self.options(), StageTimings())

    def _convert_timed(
        self,
        data: bytes,
        source: str,
        format_tag: str | None,
        opts: ConversionOptions,
        timings: StageTimings,
    ) -> ConversionResult:
        key = format_tag
        try:
            detect_start = time.perf_counter()
            if key is None:
                key = dispatch_key(source, data)
            timings.detect_ms = (time.perf_counter() - detect_start) * 1000
            convert_start = time.perf_counter()
            result = convert_bytes(data, key, opts)
            timings.convert_ms = (time.perf_counter() - convert_start) * 1000
        except ConversionError as exc:
            self._log_failure(source, key, len(data), timings, exc)
            raise
        self._log_success(source, key, len(data), timings, result)
        return result

    async def convert_data_async(
        self,
        data: bytes,
        source: str,
        *,
        format_tag: str | None = None,
        options: ConversionOptions | None = None,
    ) -> ConversionResult:
        opts = options or self.options()
        timings = StageTimings()
        key = format_tag or dispatch_key(source, data)
        convert_start = time.perf_counter()
        try:
            result = await convert_bytes_async(data, key, opts)
        except ConversionError as exc:
            self._log_failure(source, key, len(data), timings, exc)
            raise
        timings.convert_ms = (time.perf_counter() - convert_start) * 1000
        self._log_success(source, key, len(data), timings, result)
        return result

    def convert_path(
        self,
        path: Path,
        *,
        format_tag: str | None = None,
        options: ConversionOptions | None = None,
    ) -> ConversionResult:
        opts = options or self.options()
        timings = StageTimings()
        read_start = time.perf_counter()
        try:
            data = read_input(path, opts)
        except ConversionError as exc:
            self._log_failure(str(path), format_tag, 0, timings, exc)
            raise
        timings.read_ms = (time.perf_counter() - read_start) * 1000
        result = self._convert_timed(data, str(path), format_tag, opts, timings)
        logger.debug("converted %s in %.1f ms", path, (time.perf_counter() - read_start) * 1000)
        return result

    def convert_many(
        self,
        paths: Sequence[Path],
        *,
        format_tag: str | None = None,
        parallelism: int | None = None,
        options: ConversionOptions | None = None,
    ) -> list[ConversionOutcome]:
        """Convert every path, returning outcomes in input order.

        Each conversion gets its own copy of ``options``.
        """

        workers = max(1, parallelism or self._config.runtime.parallelism)
        if workers == 1 or len(paths) < 2:
            return [self._outcome(path, format_tag, options) for path in paths]
        outcomes: list[ConversionOutcome | None] = [None] * len(paths)
        with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as executor:
            future_map = {
                executor.submit(self._outcome, path, format_tag, options): index for index, path in enumerate(paths)
            }
            for future in concurrent.futures.as_completed(future_map):
                outcomes[future_map[future]] = future.result()
        return [outcome for outcome in outcomes if outcome is not None]

    def _outcome(
        self, path: Path, format_tag: str | None, options: ConversionOptions | None
    ) -> ConversionOutcome:
        opts = replace(options) if options is not None else None
        try:
            result = self.convert_path(path, format_tag=format_tag, options=opts)
        except ConversionError as exc:
            return ConversionOutcome(source=str(path), error=exc)
        return ConversionOutcome(source=str(path), result=result)

    def _log_success(
        self,
        source: str,
        key: str | None,
        size_bytes: int,
        timings: StageTimings,
        result: ConversionResult,
    ) -> None:
        if self._run_logger is None:
            return
        self._run_logger.append(
            RunLogEntry(
                source=source,
                status="success",
                format=key,
                warnings=[warning.code.value for warning in result.warnings],
                error_code=None,
                timings=timings,
                markdown_chars=len(result.markdown),
                images=len(result.images),
                size_bytes=size_bytes,
            )
        )

    def _log_failure(
        self,
        source: str,
        key: str | None,
        size_bytes: int,
        timings: StageTimings,
        exc: ConversionError,
    ) -> None:
        if self._run_logger is None:
            return
        self._run_logger.append(
            RunLogEntry(
                source=source,
                status="failure",
                format=key,
                warnings=[],
                error_code=exc.code,
                timings=timings,
                size_bytes=size_bytes,
            )
        )


__all__ = [
    "ConversionOutcome",
    "ConversionService",
    "convert_bytes",
    "convert_bytes_async",
    "convert_file",
    "convert_file_async",
    "dispatch_key",
    "read_input",
]
