"""Logging helpers with consistent formatting."""

from __future__ import annotations

import logging
import sys

from rich.logging import RichHandler


ROOT_LOGGER = "inhibit_bridge"


def get_logger(name: str, level: int = logging.INFO, *, rich: bool = True) -> logging.Logger:
    """Configure and return a logger below the ``inhibit_bridge`` namespace."""
    root = logging.getLogger(ROOT_LOGGER)
    if not root.handlers:
        root.setLevel(level)
        if rich:
            handler: logging.Handler = RichHandler(
                level=logging.NOTSET,
                markup=False,
                rich_tracebacks=True,
                tracebacks_show_locals=False,
                show_time=True,
                show_path=False,
            )
        else:
            handler = logging.StreamHandler(sys.stdout)

        formatter = logging.Formatter(
            "%(asctime)s %(name)s %(levelname)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        handler.setFormatter(formatter)
        root.addHandler(handler)
        root.propagate = False

    if name == ROOT_LOGGER or name.startswith(ROOT_LOGGER + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


def configure_logging(*, debug: bool = False, rich: bool = True) -> logging.Logger:
    """Set the level for every bridge logger at once."""
    root = get_logger(ROOT_LOGGER, rich=rich)
    root.setLevel(logging.DEBUG if debug else logging.INFO)
    return root
