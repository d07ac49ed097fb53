"""Resolution of the API key and host used to reach the Syncthing daemon."""

from __future__ import annotations

import json
import os
import sys
import xml.etree.ElementTree as ET
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import httpx

from .errors import ConfigError
from .logging import get_logger


DEFAULT_HOST = "http://localhost:8384"
DAEMON_DIR_NAME = "syncthing"
SETTINGS_DIR_NAME = "syncthing-cli"

logger = get_logger("syncthing_cli.config")


def _config_home() -> Path:
    return Path(os.environ.get("XDG_CONFIG_HOME") or Path.home() / ".config")


def _state_home() -> Path:
    return Path(os.environ.get("XDG_STATE_HOME") or Path.home() / ".local" / "state")


def default_settings_path() -> Path:
    return _config_home() / SETTINGS_DIR_NAME / "config.json"


def daemon_config_candidates() -> List[Path]:
    """Return the places Syncthing keeps ``config.xml``, most likely first."""

    candidates = [
        _config_home() / DAEMON_DIR_NAME / "config.xml",
        _state_home() / DAEMON_DIR_NAME / "config.xml",
    ]
    if sys.platform == "darwin":
        candidates.append(Path.home() / "Library" / "Application Support" / "Syncthing" / "config.xml")
    elif sys.platform.startswith("win"):
        local_app_data = os.environ.get("LOCALAPPDATA")
        if local_app_data:
            candidates.append(Path(local_app_data) / "Syncthing" / "config.xml")
    return candidates


@dataclass(frozen=True)
class DaemonConfig:
    """Fields read from the daemon's own ``config.xml``."""

    api_key: str
    host: Optional[str] = None


@dataclass(frozen=True)
class Settings:
    """Overrides persisted by ``syncthing-cli config``."""

    api_key: Optional[str] = None
    host: Optional[str] = None


@dataclass(frozen=True)
class Connection:
    """Resolved connection parameters for the API client."""

    api_key: str
    host: str
    api_key_source: str


def parse_daemon_config(text: str) -> DaemonConfig:
    """Extract the GUI API key and listen address from ``config.xml`` content."""

    try:
        root = ET.fromstring(text)
    except ET.ParseError as exc:
        raise ConfigError(f"Daemon config is not valid XML: {exc}") from exc

    gui = root if root.tag == "gui" else root.find(".//gui")
    if gui is None:
        raise ConfigError("No <gui> element found in daemon config")
    api_key = (gui.findtext("apikey") or "").strip()
    if not api_key:
        raise ConfigError("No apikey element found in daemon config")
    return DaemonConfig(api_key=api_key, host=_gui_host(gui))


def _gui_host(gui: ET.Element) -> Optional[str]:
    address = (gui.findtext("address") or "").strip()
    # Unix socket listeners cannot be reached over TCP.
    if not address or address.startswith("/") or address.startswith("unix"):
        return None
    scheme = "https" if gui.get("tls", "").strip().lower() == "true" else "http"
    host, sep, port = address.rpartition(":")
    if not sep:
        host, port = address, ""
    if host in ("", "0.0.0.0"):
        host = "127.0.0.1"
    elif host in ("[::]", "::"):
        host = "[::1]"
    return f"{scheme}://{host}:{port}" if port else f"{scheme}://{host}"


def read_daemon_config(path: Path) -> DaemonConfig:
    try:
        text = Path(path).read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise ConfigError(f"Daemon config not found at {path}") from exc
    except OSError as exc:
        raise ConfigError(f"Failed to read daemon config {path}: {exc}") from exc
    return parse_daemon_config(text)


def find_daemon_config(candidates: Optional[Sequence[Path]] = None) -> Optional[Path]:
    for candidate in candidates if candidates is not None else daemon_config_candidates():
        if candidate.is_file():
            return candidate
    return None


def load_settings(path: Optional[Path] = None) -> Settings:
    """Load persisted overrides; a missing file yields empty settings."""

    path = path or default_settings_path()
    if not path.exists():
        return Settings()
    try:
        raw: Any = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Failed to read settings file {path}: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigError(f"Settings file {path} must contain a JSON object")
    values: Dict[str, Optional[str]] = {}
    for key in ("api_key", "host"):
        value = raw.get(key)
        if value is not None and not isinstance(value, str):
            raise ConfigError(f"Settings field '{key}' must be a string")
        values[key] = value
    return Settings(**values)


def save_settings(settings: Settings, path: Optional[Path] = None) -> Path:
    path = path or default_settings_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    # The file holds the API key: create it owner-only and tighten an
    # existing file before any content is written.
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    os.chmod(path, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as handle:
        handle.write(json.dumps(asdict(settings), indent=2) + "\n")
    logger.debug("Saved settings", extra={"path": str(path)})
    return path


def validate_host(host: str) -> str:
    """Return ``host`` without a trailing slash, or raise for non-http(s) URLs."""

    value = host.strip().rstrip("/")
    try:
        url = httpx.URL(value)
    except httpx.InvalidURL as exc:
        raise ConfigError(f"Invalid host URL '{host}': {exc}") from exc
    if url.scheme not in ("http", "https") or not url.host:
        raise ConfigError(
            f"Invalid host URL '{host}'; expected something like {DEFAULT_HOST}"
        )
    return value


def validate_api_key(api_key: str) -> str:
    value = api_key.strip()
    if not value:
        raise ConfigError("API key must not be empty")
    return value


def resolve_connection(
    api_key: Optional[str] = None,
    host: Optional[str] = None,
    daemon_config: Optional[Path] = None,
    settings_path: Optional[Path] = None,
) -> Connection:
    """Resolve the API key and host.

    Each field is taken from the first source that provides it: the explicit
    argument, the persisted settings file, the daemon's ``config.xml``.
    The host finally falls back to ``DEFAULT_HOST``.
    """

    settings = load_settings(settings_path)

    key_value, key_source = api_key, "override"
    if key_value is None and settings.api_key:
        key_value, key_source = settings.api_key, "settings"
    host_value = host or settings.host

    if key_value is None or host_value is None:
        path = daemon_config or find_daemon_config()
        parsed: Optional[DaemonConfig] = None
        if key_value is None:
            if path is None:
                searched = ", ".join(str(p) for p in daemon_config_candidates())
                raise ConfigError(
                    "No API key found. Either configure with "
                    "'syncthing-cli config --api-key <KEY>' or ensure Syncthing's "
                    f"config.xml exists (searched: {searched})"
                )
            parsed = read_daemon_config(path)
            key_value, key_source = parsed.api_key, str(path)
        elif path is not None:
            try:
                parsed = read_daemon_config(path)
            except ConfigError as exc:
                logger.debug("Ignoring daemon config for host lookup: %s", exc)
        if host_value is None and parsed is not None:
            host_value = parsed.host

    connection = Connection(
        api_key=validate_api_key(key_value),
        host=validate_host(host_value or DEFAULT_HOST),
        api_key_source=key_source,
    )
    logger.debug(
        "Resolved connection",
        extra={"host": connection.host, "api_key_source": connection.api_key_source},
    )
    return connection
