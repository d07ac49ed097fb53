"""Command-line client for monitoring and controlling a Syncthing daemon."""

from __future__ import annotations

import argparse
import os
import sys
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Optional

from .api import DEFAULT_TIMEOUT, SyncthingClient
from .config import (
    DEFAULT_HOST,
    default_settings_path,
    load_settings,
    resolve_connection,
    save_settings,
    validate_api_key,
    validate_host,
)
from .errors import CliError, ConfigError
from .formatting import (
    OUTPUT_FORMATS,
    build_key_value_table,
    build_table,
    format_bytes,
    format_duration_since,
    format_uptime,
    make_console,
    print_raw,
)
from .logging import LOG_FORMATS, LOG_LEVELS, configure_logging, get_logger
from .models import (
    Completion,
    SystemStatus,
    VersionInfo,
    devices_from_json,
    errors_from_json,
    events_from_json,
    folder_errors_from_json,
    folders_from_json,
    needed_files_from_json,
    pending_devices_from_json,
    pending_folders_from_json,
)


ENV_PREFIX = "SYNCTHING_CLI_"

logger = get_logger("syncthing_cli.cli")


@dataclass(frozen=True)
class ClientConfig:
    """Configuration for the API client."""

    host: str
    api_key: str
    output: str = "table"
    api_key_source: str = "override"
    verify_tls: bool = False
    timeout: float = DEFAULT_TIMEOUT

    def __post_init__(self) -> None:
        if self.output not in OUTPUT_FORMATS:
            raise CliError(f"Output format must be one of {', '.join(OUTPUT_FORMATS)}")

    @property
    def raw(self) -> bool:
        return self.output != "table"


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    return os.environ.get(f"{ENV_PREFIX}{name}", default)


def _env_bool(name: str) -> bool:
    return (_env(name) or "").strip().lower() in {"1", "true", "yes", "on"}


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="syncthing-cli",
        description=(
            "Monitor and control a running Syncthing daemon through its REST API. "
            "The API key is read from Syncthing's config.xml unless overridden. "
            "Examples: `syncthing-cli status`, `syncthing-cli folders -i default`, "
            "`syncthing-cli --output json devices`."
        ),
    )
    parser.add_argument(
        "--api-key",
        default=_env("API_KEY"),
        help=f"API key sent as X-API-Key (env: {ENV_PREFIX}API_KEY). Overrides config files.",
    )
    parser.add_argument(
        "--host",
        default=_env("HOST"),
        help=(
            f"Base URL of the Syncthing GUI/API (env: {ENV_PREFIX}HOST). "
            f"Defaults to the GUI address in config.xml, then {DEFAULT_HOST}."
        ),
    )
    parser.add_argument(
        "--daemon-config",
        type=Path,
        default=_env("DAEMON_CONFIG"),
        help=f"Path to Syncthing's config.xml (env: {ENV_PREFIX}DAEMON_CONFIG).",
    )
    parser.add_argument(
        "--output",
        "-o",
        choices=list(OUTPUT_FORMATS),
        default=_env("OUTPUT", "table"),
        help=(
            f"Output format (env: {ENV_PREFIX}OUTPUT). 'table' renders summaries; "
            "'json' and 'yaml' pass the daemon's responses through."
        ),
    )
    parser.add_argument(
        "--verify-tls",
        action="store_true",
        default=_env_bool("VERIFY_TLS"),
        help=(
            f"Verify the daemon's TLS certificate (env: {ENV_PREFIX}VERIFY_TLS). "
            "Off by default since Syncthing uses a self-signed certificate."
        ),
    )
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=list(LOG_LEVELS),
        default=(_env("LOG_LEVEL") or "WARNING").upper(),
        help=f"Diagnostic log level on stderr (env: {ENV_PREFIX}LOG_LEVEL).",
    )
    parser.add_argument(
        "--log-format",
        choices=list(LOG_FORMATS),
        default=_env("LOG_FORMAT", "plain"),
        help=f"Diagnostic log format (env: {ENV_PREFIX}LOG_FORMAT).",
    )

    subparsers = parser.add_subparsers(dest="command", required=False)

    status = subparsers.add_parser("status", help="Show system status, version and sync completion")
    status.set_defaults(func=_cmd_status)

    folders = subparsers.add_parser(
        "folders",
        help="List folders with sync status",
        description="Lists configured folders, or shows /rest/db/status for one folder with --id.",
    )
    folders.add_argument("-i", "--id", help="Show detailed info for a specific folder")
    folders.add_argument(
        "--errors",
        action="store_true",
        help="With --id, also list files the folder failed to sync",
    )
    folders.add_argument(
        "--need",
        action="store_true",
        help="With --id, also list files the folder still needs from remote devices",
    )
    folders.set_defaults(func=_cmd_folders)

    devices = subparsers.add_parser("devices", help="List devices with connection state")
    devices.set_defaults(func=_cmd_devices)

    scan = subparsers.add_parser("scan", help="Trigger a folder rescan")
    scan.add_argument("folder", nargs="?", help="Folder ID (rescan all if not specified)")
    scan.add_argument("--sub", help="Only rescan this path inside the folder")
    scan.set_defaults(func=_cmd_scan)

    errors = subparsers.add_parser("errors", help="Show system errors")
    errors.add_argument("-c", "--clear", action="store_true", help="Clear all errors")
    errors.set_defaults(func=_cmd_errors)

    pending = subparsers.add_parser("pending", help="Show pending devices and folders")
    pending.set_defaults(func=_cmd_pending)

    events = subparsers.add_parser("events", help="Show recent events, newest first")
    events.add_argument("-l", "--limit", type=int, default=20, help="Number of events to show")
    events.add_argument("--since", type=int, help="Only events with an ID greater than this")
    events.add_argument(
        "--types",
        help="Comma-separated event types to include (e.g. FolderSummary,DeviceConnected)",
    )
    events.add_argument(
        "--wait",
        type=int,
        default=1,
        help="Seconds the daemon may wait for new events before answering",
    )
    events.set_defaults(func=_cmd_events)

    version = subparsers.add_parser("version", help="Show the daemon version")
    version.set_defaults(func=_cmd_version)

    restart = subparsers.add_parser("restart", help="Restart Syncthing")
    restart.set_defaults(func=_cmd_restart)

    shutdown = subparsers.add_parser("shutdown", help="Shut down Syncthing")
    shutdown.set_defaults(func=_cmd_shutdown)

    config = subparsers.add_parser(
        "config",
        help="Show or persist the API key and host",
        description=(
            "Without options, shows where the API key comes from and which host is used. "
            "With --api-key/--host, "
            f"saves them to {default_settings_path()}."
        ),
    )
    config.add_argument("--api-key", dest="set_api_key", help="API key to persist")
    config.add_argument("--host", dest="set_host", help="Host URL to persist (e.g. http://localhost:8384)")
    config.add_argument(
        "--remote",
        action="store_true",
        help="Print the daemon's full configuration (GET /rest/config)",
    )
    config.set_defaults(func=None)

    return parser


def _load_config(args: argparse.Namespace, settings_path: Optional[Path] = None) -> ClientConfig:
    connection = resolve_connection(
        api_key=args.api_key,
        host=args.host,
        daemon_config=Path(args.daemon_config) if args.daemon_config else None,
        settings_path=settings_path,
    )
    return ClientConfig(
        host=connection.host,
        api_key=connection.api_key,
        output=args.output,
        api_key_source=connection.api_key_source,
        verify_tls=args.verify_tls,
    )


def _build_client(config: ClientConfig) -> SyncthingClient:
    return SyncthingClient(
        config.api_key,
        config.host,
        timeout=config.timeout,
        verify=config.verify_tls,
    )


def _print_message(config: ClientConfig, message: str, payload: Any) -> None:
    if config.raw:
        print_raw(payload, config.output)
    else:
        make_console().print(message)


def _cmd_status(config: ClientConfig, client: SyncthingClient, args: argparse.Namespace) -> None:
    status = client.status()
    version = client.version()
    completion = client.completion()
    if config.raw:
        print_raw({"status": status, "version": version, "completion": completion}, config.output)
        return

    system = SystemStatus.from_json(status)
    ver = VersionInfo.from_json(version)
    sync = Completion.from_json(completion)

    console = make_console()
    console.print(f"Syncthing {ver.version}")
    if system.my_id:
        console.print(f"Device ID: {system.my_id}")
    console.print()
    console.print(f"Uptime: {format_uptime(system.uptime)}")
    console.print(f"Memory: {format_bytes(system.alloc)} / {format_bytes(system.sys)}")
    console.print()
    console.print(f"Sync: {sync.completion:.1f}% complete")
    console.print(f"Total: {format_bytes(sync.global_bytes)} in {sync.global_items} items")
    if sync.need_bytes > 0:
        console.print(f"Need: {format_bytes(sync.need_bytes)} in {sync.need_items} items")


def _cmd_folders(config: ClientConfig, client: SyncthingClient, args: argparse.Namespace) -> None:
    if args.id:
        _show_folder(config, client, args.id, args.errors, args.need)
        return
    if args.errors or args.need:
        raise CliError("--errors and --need require --id")

    folders = client.config_folders()
    stats = client.folder_stats()
    if config.raw:
        print_raw({"folders": folders, "stats": stats}, config.output)
        return

    summaries = folders_from_json(folders, stats)
    console = make_console()
    if not summaries:
        console.print("No folders configured")
        return
    console.print(
        build_table(
            ["Folder", "ID", "Type", "State", "Path", "Last scan"],
            [
                (f.display_name, f.id, f.type or None, f.state, f.path or None, format_duration_since(f.last_scan))
                for f in summaries
            ],
        )
    )


def _show_folder(
    config: ClientConfig,
    client: SyncthingClient,
    folder_id: str,
    with_errors: bool = False,
    with_need: bool = False,
) -> None:
    detail = client.folder_status(folder_id)
    file_errors = client.folder_errors(folder_id) if with_errors else None
    needed = client.need(folder_id) if with_need else None
    if config.raw:
        if not (with_errors or with_need):
            print_raw(detail, config.output)
            return
        payload: Dict[str, Any] = {"status": detail}
        if with_errors:
            payload["errors"] = file_errors
        if with_need:
            payload["need"] = needed
        print_raw(payload, config.output)
        return

    console = make_console()
    rows = detail.items() if isinstance(detail, dict) else [("status", detail)]
    console.print(build_key_value_table(rows, title=f"Folder {folder_id}"))
    if with_errors:
        entries = folder_errors_from_json(file_errors)
        if not entries:
            console.print("No file errors")
        else:
            console.print(build_table(["Path", "Error"], [(e.path, e.error) for e in entries]))
    if with_need:
        files = needed_files_from_json(needed)
        if not files:
            console.print("Nothing needed")
        else:
            console.print(
                build_table(["Needed file", "Size", "Queue"], [(f.name, format_bytes(f.size), f.queue) for f in files])
            )


def _cmd_devices(config: ClientConfig, client: SyncthingClient, args: argparse.Namespace) -> None:
    devices = client.config_devices()
    connections = client.connections()
    stats = client.device_stats()
    if config.raw:
        print_raw({"devices": devices, "connections": connections, "stats": stats}, config.output)
        return

    summaries = devices_from_json(devices, connections, stats)
    console = make_console()
    if not summaries:
        console.print("No devices configured")
        return
    console.print(
        build_table(
            ["Device", "ID", "State", "Address", "Last seen"],
            [
                (
                    d.display_name,
                    d.short_id,
                    d.state,
                    d.address or None,
                    "now" if d.connected else format_duration_since(d.last_seen),
                )
                for d in summaries
            ],
        )
    )


def _cmd_scan(config: ClientConfig, client: SyncthingClient, args: argparse.Namespace) -> None:
    if args.sub and not args.folder:
        raise CliError("--sub requires a folder ID")
    client.scan(args.folder, args.sub)
    if args.folder:
        message = f"Scan triggered for folder: {args.folder}"
    else:
        message = "Scan triggered for all folders"
    _print_message(config, message, {"status": "scan_requested", "folder": args.folder})


def _cmd_errors(config: ClientConfig, client: SyncthingClient, args: argparse.Namespace) -> None:
    if args.clear:
        client.clear_errors()
        _print_message(config, "Errors cleared", {"status": "cleared"})
        return

    data = client.errors()
    if config.raw:
        print_raw(data, config.output)
        return
    console = make_console()
    entries = errors_from_json(data)
    if not entries:
        console.print("No errors")
        return
    for entry in entries:
        console.print(f"[{format_duration_since(entry.when)}] {entry.message}")


def _cmd_pending(config: ClientConfig, client: SyncthingClient, args: argparse.Namespace) -> None:
    devices = client.pending_devices()
    folders = client.pending_folders()
    if config.raw:
        print_raw({"devices": devices, "folders": folders}, config.output)
        return

    console = make_console()
    console.print("Pending Devices:")
    pending_devices = pending_devices_from_json(devices)
    if not pending_devices:
        console.print("  (none)")
    for device in pending_devices:
        where = f" at {device.address}" if device.address else ""
        console.print(f"  {device.name} ({device.short_id}){where}, {format_duration_since(device.time)}")

    console.print()
    console.print("Pending Folders:")
    pending_folders = pending_folders_from_json(folders)
    if not pending_folders:
        console.print("  (none)")
    for folder in pending_folders:
        console.print(f"  {folder.label} from {folder.offered_by_short}, {format_duration_since(folder.time)}")


def _cmd_events(config: ClientConfig, client: SyncthingClient, args: argparse.Namespace) -> None:
    if args.limit is not None and args.limit < 1:
        raise CliError("--limit must be at least 1")
    types = [t.strip() for t in args.types.split(",") if t.strip()] if args.types else None
    data = client.events(since=args.since, limit=args.limit, event_types=types, wait=args.wait)
    if config.raw:
        print_raw(data, config.output)
        return

    console = make_console()
    events = events_from_json(data, limit=args.limit)
    if not events:
        console.print("No events")
        return
    for event in events:
        console.print(f"[{event.id}] {format_duration_since(event.time)} - {event.type}")


def _cmd_version(config: ClientConfig, client: SyncthingClient, args: argparse.Namespace) -> None:
    data = client.version()
    if config.raw:
        print_raw(data, config.output)
        return
    info = VersionInfo.from_json(data)
    console = make_console()
    platform = f" ({info.os}-{info.arch})" if info.os and info.arch else ""
    console.print(f"Syncthing {info.version}{platform}")
    if info.long_version:
        console.print(info.long_version)


def _cmd_restart(config: ClientConfig, client: SyncthingClient, args: argparse.Namespace) -> None:
    data = client.restart()
    _print_message(config, "Syncthing restart initiated", data or {"status": "restarting"})


def _cmd_shutdown(config: ClientConfig, client: SyncthingClient, args: argparse.Namespace) -> None:
    data = client.shutdown()
    _print_message(config, "Syncthing shutdown initiated", data or {"status": "shutting_down"})


def _describe_key_source(source: str, settings_path: Optional[Path]) -> str:
    if source == "override":
        return f"--api-key or {ENV_PREFIX}API_KEY"
    if source == "settings":
        return str(settings_path or default_settings_path())
    return source


def _show_effective_config(args: argparse.Namespace, settings_path: Optional[Path]) -> None:
    console = make_console()
    try:
        config = _load_config(args, settings_path)
    except ConfigError as exc:
        # Nothing resolves yet; fall back to what the settings file holds.
        logger.debug("No effective connection: %s", exc)
        settings = load_settings(settings_path)
        console.print(f"API Key: {'(set)' if settings.api_key else '(from syncthing config)'}")
        console.print(f"Host: {settings.host or '(from syncthing config, else ' + DEFAULT_HOST + ')'}")
        return
    console.print(f"API Key: (set) from {_describe_key_source(config.api_key_source, settings_path)}")
    console.print(f"Host: {config.host}")


def _cmd_config(args: argparse.Namespace, settings_path: Optional[Path] = None) -> None:
    if args.remote:
        if args.set_api_key is not None or args.set_host is not None:
            raise CliError("--remote cannot be combined with --api-key or --host; pass them before 'config'")
        config = _load_config(args, settings_path)
        with _build_client(config) as client:
            data = client.config()
        print_raw(data, "yaml" if config.output == "yaml" else "json")
        return

    if args.set_api_key is None and args.set_host is None:
        _show_effective_config(args, settings_path)
        return

    settings = load_settings(settings_path)
    if args.set_api_key is not None:
        settings = replace(settings, api_key=validate_api_key(args.set_api_key))
    if args.set_host is not None:
        settings = replace(settings, host=validate_host(args.set_host))
    path = save_settings(settings, settings_path)
    sys.stderr.write(f"Configuration saved to {path}\n")


def _check_env_choices(parser: argparse.ArgumentParser, args: argparse.Namespace) -> None:
    """Apply the ``choices`` checks argparse skips for environment defaults."""

    for name, value, allowed in (
        ("OUTPUT", args.output, OUTPUT_FORMATS),
        ("LOG_LEVEL", args.log_level, LOG_LEVELS),
        ("LOG_FORMAT", args.log_format, LOG_FORMATS),
    ):
        if value not in allowed:
            parser.error(f"{ENV_PREFIX}{name} must be one of {', '.join(allowed)}; got '{value}'")


def main(argv: Optional[Iterable[str]] = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(args=argv)
    _check_env_choices(parser, args)
    configure_logging(args.log_level, args.log_format)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        if args.command == "config":
            _cmd_config(args)
            return

        config = _load_config(args)
        logger.debug(
            "Running command",
            extra={"command": args.command, "host": config.host, "api_key_source": config.api_key_source},
        )
        with _build_client(config) as client:
            func: Callable[[ClientConfig, SyncthingClient, argparse.Namespace], None] = args.func
            func(config, client, args)
    except CliError as exc:
        logger.debug("Command failed", exc_info=True)
        sys.stderr.write(f"Error: {exc}\n")
        sys.exit(exc.exit_code)


if __name__ == "__main__":
    main()
