from __future__ import annotations

import io
import logging
import zipfile
import zlib

from ..exceptions import InputTooLargeError, Utf8Failure, ZipFailure

logger = logging.getLogger(__name__)

_READ_ERRORS = (zipfile.BadZipFile, zlib.error, NotImplementedError, RuntimeError, EOFError, OSError)


class OoxmlPackage:
    """Read-only view over the parts of a ZIP package.

    Parts are decompressed on demand. A missing part is reported as
    ``None``; any other archive failure raises ``ZipFailure``.
    """

    def __init__(self, data: bytes) -> None:
        try:
            self._archive = zipfile.ZipFile(io.BytesIO(data))
        except (zipfile.BadZipFile, zipfile.LargeZipFile, OSError) as exc:
            raise ZipFailure(f"cannot open package: {exc}") from exc
        self._infos = {info.filename: info for info in self._archive.infolist() if not info.is_dir()}
        self._folded = {name.lower(): name for name in self._infos}

    def __enter__(self) -> "OoxmlPackage":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self._archive.close()

    @property
    def names(self) -> list[str]:
        return list(self._infos)

    def uncompressed_size(self) -> int:
        return sum(info.file_size for info in self._infos.values())

    def check_budget(self, limit: int) -> None:
        total = self.uncompressed_size()
        if total > limit:
            raise InputTooLargeError(total, limit)

    def _resolve_name(self, path: str) -> str | None:
        path = path.lstrip("/")
        if path in self._infos:
            return path
        # part names are case-insensitive in OPC
        return self._folded.get(path.lower())

    def has_part(self, path: str) -> bool:
        return self._resolve_name(path) is not None

    def read_bytes(self, path: str) -> bytes | None:
        name = self._resolve_name(path)
        if name is None:
            logger.debug("part not found: %s", path)
            return None
        try:
            return self._archive.read(name)
        except _READ_ERRORS as exc:
            raise ZipFailure(f"cannot read part {name}: {exc}") from exc

    def read_text(self, path: str) -> str | None:
        data = self.read_bytes(path)
        if data is None:
            return None
        try:
            return data.decode("utf-8").removeprefix("\ufeff")
        except UnicodeDecodeError as exc:
            raise Utf8Failure(f"part {path} is not valid UTF-8: {exc}") from exc


__all__ = ["OoxmlPackage"]
