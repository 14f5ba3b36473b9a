from __future__ import annotations

import json
import threading
import time
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any


@dataclass(slots=True)
class StageTimings:
    read_ms: float = 0.0
    detect_ms: float = 0.0
    convert_ms: float = 0.0


@dataclass(slots=True)
class RunLogEntry:
    source: str
    status: str
    format: str | None
    warnings: list[str]
    error_code: str | None
    timings: StageTimings
    markdown_chars: int = 0
    images: int = 0
    size_bytes: int = 0
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class RunLogger:
    """Appends one JSON line per conversion."""

    def __init__(self, log_file: Path) -> None:
        self._log_file = log_file
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._log_file

    def append(self, entry: RunLogEntry) -> None:
        self._log_file.parent.mkdir(parents=True, exist_ok=True)
        line = json.dumps(entry.to_dict(), ensure_ascii=False)
        with self._lock, self._log_file.open("a", encoding="utf-8") as handle:
            handle.write(line + "\n")


__all__ = ["RunLogEntry", "RunLogger", "StageTimings"]
