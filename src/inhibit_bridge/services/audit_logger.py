"""Structured audit logger writing JSON Lines for lock lifecycle events."""

from __future__ import annotations

import datetime as dt
import json
import os
import threading
from pathlib import Path
from typing import Any, Dict, Optional

from inhibit_bridge.utils.logging import get_logger


class AuditLogger:
    """Persist one JSON record per inhibit, uninhibit, reclamation or drain."""

    def __init__(self, path: Optional[Path] = None) -> None:
        target = path or Path(os.getenv("INHIBIT_BRIDGE_AUDIT_LOG", "inhibit-bridge-audit.log"))
        target.parent.mkdir(parents=True, exist_ok=True)
        self._path = target
        self._lock = threading.Lock()
        self.logger = get_logger("AuditLogger")

    @property
    def path(self) -> Path:
        return self._path

    def log(self, *, event: str, handle: int, payload: Dict[str, Any]) -> None:
        record = {
            "timestamp": dt.datetime.now(dt.timezone.utc).isoformat(),
            "event": event,
            "handle": handle,
            "payload": payload,
        }
        try:
            with self._lock:
                self._append_line(record)
        except OSError:
            self.logger.warning("Failed to write audit record to %s", self._path, exc_info=True)

    def _append_line(self, record: Dict[str, Any]) -> None:
        with self._path.open("a", encoding="utf-8") as fh:
            fh.write(json.dumps(record, ensure_ascii=True))
            fh.write("\n")
