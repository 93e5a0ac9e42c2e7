"""Bridge desktop idle-inhibit requests to systemd-logind inhibitors."""

__all__ = ["__version__"]

__version__ = "0.1.0"
