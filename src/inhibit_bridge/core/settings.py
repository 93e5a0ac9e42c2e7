"""Runtime settings loader."""

from __future__ import annotations

import os
import re
import sys
from pathlib import Path
from typing import Any, List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from inhibit_bridge.utils.env import get_bool_env


SCREENSAVER_BUS_NAME = "org.freedesktop.ScreenSaver"
SCREENSAVER_PATH = "/org/freedesktop/ScreenSaver"
# Firefox looks for this path, not /org/freedesktop/ScreenSaver
LEGACY_PATH = "/ScreenSaver"

ENV_HEARTBEAT_INTERVAL = "INHIBIT_BRIDGE_HEARTBEAT_INTERVAL"
ENV_DEBUG = "INHIBIT_BRIDGE_DEBUG"
ENV_AUDIT_LOG = "INHIBIT_BRIDGE_AUDIT_LOG"

_DURATION_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h)?\s*$")
_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}
_OBJECT_PATH_RE = re.compile(r"^/$|^(/[A-Za-z0-9_]+)+$")


def parse_duration(value: Any) -> float:
    """Return seconds for ``10``, ``2.5``, ``"10s"``, ``"500ms"``, ``"1m"`` or ``"1h"``."""
    if isinstance(value, bool):
        raise ValueError(f"invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        return float(value)
    match = _DURATION_RE.match(str(value))
    if not match:
        raise ValueError(f"invalid duration: {value!r}")
    number, unit = match.groups()
    return float(number) * _DURATION_UNITS[unit or "s"]


def default_program_name() -> str:
    return Path(sys.argv[0] or "inhibit-bridge").name or "inhibit-bridge"


class BridgeSettings(BaseModel):
    heartbeat_interval: float = Field(default=10.0, gt=0)
    bus_name: str = SCREENSAVER_BUS_NAME
    object_paths: List[str] = Field(default_factory=lambda: [SCREENSAVER_PATH, LEGACY_PATH])
    program_name: Optional[str] = None
    inhibit_what: str = "idle"
    inhibit_mode: str = "block"
    drain_on_shutdown: bool = True
    audit_log_path: Optional[Path] = None
    call_timeout: float = Field(default=25.0, gt=0)
    debug: bool = False

    @field_validator("heartbeat_interval", "call_timeout", mode="before")
    @classmethod
    def _parse_duration(cls, value: Any) -> float:
        return parse_duration(value)

    @field_validator("object_paths")
    @classmethod
    def _check_paths(cls, paths: List[str]) -> List[str]:
        if not paths:
            raise ValueError("at least one object path is required")
        for path in paths:
            if not _OBJECT_PATH_RE.match(path):
                raise ValueError(f"invalid object path: {path!r}")
        return list(dict.fromkeys(paths))

    @field_validator("inhibit_mode")
    @classmethod
    def _check_mode(cls, mode: str) -> str:
        if mode not in ("block", "delay"):
            raise ValueError("inhibit_mode must be 'block' or 'delay'")
        return mode

    @property
    def program(self) -> str:
        return self.program_name or default_program_name()

    @classmethod
    def from_file(cls, path: Path) -> "BridgeSettings":
        data = yaml.safe_load(path.read_text()) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Invalid bridge settings: expected a mapping in {path}")
        try:
            settings = cls.model_validate(data)
        except ValidationError as exc:
            raise ValueError(f"Invalid bridge settings: {exc}") from exc
        if settings.audit_log_path and not settings.audit_log_path.is_absolute():
            settings.audit_log_path = (path.parent / settings.audit_log_path).resolve()
        return settings

    @classmethod
    def load(cls, path: Optional[Path] = None, **overrides: Any) -> "BridgeSettings":
        """Merge the optional YAML file, environment and explicit overrides, in that order."""
        base = cls.from_file(path) if path is not None else cls()
        data = base.model_dump()

        interval = os.getenv(ENV_HEARTBEAT_INTERVAL)
        if interval:
            data["heartbeat_interval"] = interval
        audit_log = os.getenv(ENV_AUDIT_LOG)
        if audit_log:
            data["audit_log_path"] = Path(audit_log)
        data["debug"] = get_bool_env(ENV_DEBUG, default=data["debug"])

        data.update({key: value for key, value in overrides.items() if value is not None})
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise ValueError(f"Invalid bridge settings: {exc}") from exc
