"""Command-line client for the Syncthing REST API."""

__all__ = ["api", "cli", "config", "errors", "formatting", "logging", "models"]
__version__ = "0.1.0"
