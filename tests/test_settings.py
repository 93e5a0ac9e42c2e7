from __future__ import annotations

from pathlib import Path

import pytest

from inhibit_bridge.cli import build_parser
from inhibit_bridge.core.settings import BridgeSettings, parse_duration


@pytest.mark.parametrize(
    "raw, seconds",
    [(10, 10.0), (2.5, 2.5), ("10s", 10.0), ("500ms", 0.5), ("1m", 60.0), ("1h", 3600.0), ("7", 7.0)],
)
def test_parse_duration(raw, seconds):
    assert parse_duration(raw) == pytest.approx(seconds)


@pytest.mark.parametrize("raw", ["soon", "10 parsecs", "", True])
def test_parse_duration_rejects_garbage(raw):
    with pytest.raises(ValueError):
        parse_duration(raw)


def test_defaults():
    settings = BridgeSettings()
    assert settings.heartbeat_interval == 10.0
    assert settings.bus_name == "org.freedesktop.ScreenSaver"
    assert settings.object_paths == ["/org/freedesktop/ScreenSaver", "/ScreenSaver"]
    assert settings.inhibit_what == "idle"
    assert settings.inhibit_mode == "block"
    assert settings.drain_on_shutdown is True


def test_from_file_resolves_relative_audit_path(tmp_path):
    config = tmp_path / "bridge.yml"
    config.write_text("heartbeat_interval: 30s\naudit_log_path: logs/audit.log\n")

    settings = BridgeSettings.from_file(config)

    assert settings.heartbeat_interval == 30.0
    assert settings.audit_log_path == (tmp_path / "logs" / "audit.log").resolve()


def test_example_config_is_valid():
    example = Path(__file__).resolve().parent.parent / "config" / "bridge.example.yml"
    settings = BridgeSettings.from_file(example)
    assert settings.heartbeat_interval == 10.0


@pytest.mark.parametrize(
    "content",
    [
        "heartbeat_interval: 0\n",
        "object_paths: []\n",
        "object_paths: ['relative/path']\n",
        "inhibit_mode: forever\n",
        "- just\n- a list\n",
    ],
)
def test_from_file_rejects_invalid(tmp_path, content):
    config = tmp_path / "bridge.yml"
    config.write_text(content)
    with pytest.raises(ValueError):
        BridgeSettings.from_file(config)


def test_load_precedence(tmp_path, monkeypatch):
    config = tmp_path / "bridge.yml"
    config.write_text("heartbeat_interval: 30s\n")
    monkeypatch.setenv("INHIBIT_BRIDGE_HEARTBEAT_INTERVAL", "20s")
    monkeypatch.setenv("INHIBIT_BRIDGE_DEBUG", "yes")

    assert BridgeSettings.load(config).heartbeat_interval == 20.0
    assert BridgeSettings.load(config).debug is True
    assert BridgeSettings.load(config, heartbeat_interval=5.0).heartbeat_interval == 5.0


def test_duplicate_paths_are_collapsed():
    settings = BridgeSettings(object_paths=["/ScreenSaver", "/ScreenSaver"])
    assert settings.object_paths == ["/ScreenSaver"]


def test_cli_parses_heartbeat_interval():
    parser = build_parser()
    assert parser.parse_args(["--heartbeat-interval", "250ms"]).heartbeat_interval == 0.25
    assert parser.parse_args([]).heartbeat_interval is None
    with pytest.raises(SystemExit):
        parser.parse_args(["--heartbeat-interval", "0s"])
