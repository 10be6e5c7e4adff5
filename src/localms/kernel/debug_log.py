"""JSONL event journal for supervisor and chat events.

One line per event under ``<config_root>/logs/events.jsonl``. The journal
rolls over by size into ``events.jsonl.1`` .. ``events.jsonl.N``. Writes
never raise; failures are counted and shown by ``localms status``.
"""

from __future__ import annotations

import json
import re
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

from localms.kernel.types import EventSink, now_ms

JOURNAL_NAME = "events.jsonl"
MASK = "***"
REDACTION_MODES = ("default", "none", "strict")

# Commands and error bodies can carry credentials from the inherited environment.
_SECRET_KEY_RE = re.compile(r"(token|secret|password|authorization|cookie|api[_-]?key)", re.IGNORECASE)
_SECRET_TEXT_RE = re.compile(
    r"(?i)(bearer\s+|\b(?:token|secret|password|api[_-]?key)\s*[:=]\s*)([^\s,;\"']+)"
)
_COUNTER_KEYS = frozenset({"prompt_tokens", "completion_tokens", "total_tokens", "max_tokens"})

_LEVEL_BY_OUTCOME = {
    "failed": "error",
    "timeout": "error",
    "cancelled": "warn",
    "ambiguous": "warn",
}


def level_for(event_type: str) -> str:
    return _LEVEL_BY_OUTCOME.get(event_type.rsplit(".", 1)[-1], "info")


def mask_secrets(value: Any, mode: str = "default") -> Any:
    """Return a copy of ``value`` with credentials masked.

    ``strict`` keeps only the shape: every scalar becomes the mask.
    """
    if mode == "none":
        return value
    if isinstance(value, dict):
        masked: Dict[str, Any] = {}
        for key, item in value.items():
            if mode == "default" and key not in _COUNTER_KEYS and _SECRET_KEY_RE.search(str(key)):
                masked[key] = MASK
            else:
                masked[key] = mask_secrets(item, mode)
        return masked
    if isinstance(value, (list, tuple)):
        return [mask_secrets(item, mode) for item in value]
    if mode == "strict":
        return MASK
    if isinstance(value, str):
        return _SECRET_TEXT_RE.sub(lambda m: m.group(1) + MASK, value)
    return value


class DebugLogWriter:
    def __init__(
        self,
        *,
        logs_dir: Path,
        enabled: bool,
        max_file_bytes: int = 10 * 1024 * 1024,
        max_files: int = 5,
        redaction: str = "default",
    ) -> None:
        self.logs_dir = Path(logs_dir)
        self.enabled = bool(enabled)
        self.max_file_bytes = max(1, int(max_file_bytes or 0))
        self.max_files = max(1, int(max_files or 0))
        mode = str(redaction or "").strip().lower()
        self.redaction = mode if mode in REDACTION_MODES else "default"
        self.write_errors = 0
        self._lock = threading.Lock()

    @property
    def journal(self) -> Path:
        return self.logs_dir / JOURNAL_NAME

    def rolled(self) -> List[Path]:
        return [
            path
            for path in (self._rolled_path(index) for index in range(1, self.max_files + 1))
            if path.exists()
        ]

    def event_sink(self, component: str) -> EventSink:
        def sink(event_type: str, payload: Dict[str, Any]) -> None:
            self.record(component, event_type, payload)

        return sink

    def record(
        self,
        component: str,
        event_type: str,
        payload: Optional[Dict[str, Any]] = None,
        *,
        ts_ms: Optional[int] = None,
    ) -> None:
        if not self.enabled:
            return
        line = json.dumps(
            {
                "ts_ms": int(ts_ms if ts_ms is not None else now_ms()),
                "level": level_for(event_type),
                "component": component,
                "event": event_type,
                "data": mask_secrets(dict(payload or {}), self.redaction),
            },
            ensure_ascii=True,
            separators=(",", ":"),
            default=str,
        )
        encoded = (line + "\n").encode("utf-8")
        with self._lock:
            try:
                self.logs_dir.mkdir(parents=True, exist_ok=True)
                if self._size(self.journal) + len(encoded) > self.max_file_bytes:
                    self._roll()
                with self.journal.open("ab") as fp:
                    fp.write(encoded)
            except OSError:
                self.write_errors += 1

    def summary(self) -> Dict[str, Any]:
        """Journal location, size and write failures, for ``localms status``."""
        with self._lock:
            rolled = self.rolled() if self.enabled else []
            active = self._size(self.journal) if self.enabled else 0
            return {
                "enabled": self.enabled,
                "path": str(self.journal),
                "size_bytes": active + sum(self._size(path) for path in rolled),
                "rolled_files": len(rolled),
                "write_errors": self.write_errors,
            }

    def _roll(self) -> None:
        self._rolled_path(self.max_files).unlink(missing_ok=True)
        for index in range(self.max_files - 1, 0, -1):
            source = self._rolled_path(index)
            if source.exists():
                source.replace(self._rolled_path(index + 1))
        if self.journal.exists():
            self.journal.replace(self._rolled_path(1))

    def _rolled_path(self, index: int) -> Path:
        return self.logs_dir / "{0}.{1}".format(JOURNAL_NAME, index)

    @staticmethod
    def _size(path: Path) -> int:
        try:
            return int(path.stat().st_size)
        except OSError:
            return 0
