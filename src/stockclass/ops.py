"""Operational utilities for StockClass."""

from __future__ import annotations

import json
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, TextIO


class StructuredLogger:
    """Write JSON lines log entries for later inspection."""

    def __init__(self, *, path: Path | None = None, stream: Optional[TextIO] = None, keep: int = 500) -> None:
        self.path = path
        self.stream = stream
        self._keep = keep
        self._entries: list[dict] = []

    def log(self, event_type: str, **fields: object) -> dict:
        entry = {"timestamp": datetime.now(timezone.utc).isoformat(), "event": event_type, **fields}
        self._entries.append(entry)
        if len(self._entries) > self._keep:
            del self._entries[: len(self._entries) - self._keep]
        line = json.dumps(entry, ensure_ascii=False, default=str)
        if self.path:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as handle:
                handle.write(line + "\n")
        if self.stream is not None:
            self.stream.write(line + "\n")
        return entry

    def tail(self, limit: int = 50) -> tuple[dict, ...]:
        return tuple(self._entries[-limit:])

    def events(self, event_type: str) -> tuple[dict, ...]:
        return tuple(entry for entry in self._entries if entry["event"] == event_type)


_logger = StructuredLogger(stream=sys.stderr)


def get_logger() -> StructuredLogger:
    """Return the process-wide event logger."""

    return _logger


def configure_logging(*, path: Path | None = None, echo: bool = True) -> StructuredLogger:
    """Point the process-wide logger at ``path`` and toggle console echo."""

    _logger.path = path
    _logger.stream = sys.stderr if echo else None
    return _logger


__all__ = ["StructuredLogger", "configure_logging", "get_logger"]
