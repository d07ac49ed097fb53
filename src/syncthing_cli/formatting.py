"""Human-readable rendering of daemon responses."""

from __future__ import annotations

import json
import re
import sys
from datetime import datetime, timezone
from typing import Any, Iterable, Optional, Sequence, Tuple

import yaml
from rich import box
from rich.console import Console
from rich.table import Table

OUTPUT_FORMATS = ("table", "json", "yaml")

_UNITS = (("TB", 1024 ** 4), ("GB", 1024 ** 3), ("MB", 1024 ** 2), ("KB", 1024))
# Syncthing emits nanosecond precision; datetime accepts at most microseconds.
_FRACTION = re.compile(r"\.(\d+)")


def format_bytes(value: int) -> str:
    for unit, size in _UNITS:
        if value >= size:
            return f"{value / size:.1f} {unit}"
    return f"{value} B"


def format_uptime(seconds: int) -> str:
    hours, remainder = divmod(max(seconds, 0), 3600)
    return f"{hours}h {remainder // 60}m"


def parse_timestamp(value: str) -> Optional[datetime]:
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    text = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_duration_since(timestamp: Optional[str], now: Optional[datetime] = None) -> str:
    """Render ``timestamp`` as ``3d ago``/``2h ago``/``5m ago``/``just now``.

    Missing values and Syncthing's zero time render as ``never``; anything
    unparseable is returned as given.
    """

    if not timestamp:
        return "never"
    parsed = parse_timestamp(timestamp)
    if parsed is None:
        return timestamp
    if parsed.year <= 1:
        return "never"
    now = now or datetime.now(tz=timezone.utc)
    seconds = int((now - parsed).total_seconds())
    if seconds >= 86400:
        return f"{seconds // 86400}d ago"
    if seconds >= 3600:
        return f"{seconds // 3600}h ago"
    if seconds >= 60:
        return f"{seconds // 60}m ago"
    return "just now"


def make_console() -> Console:
    # Daemon strings may contain brackets; never interpret them as markup.
    return Console(highlight=False, markup=False, soft_wrap=True)


def print_raw(data: Any, output: str) -> None:
    """Pass the response body through as JSON or YAML."""

    if output == "yaml":
        yaml.safe_dump(data, sys.stdout, sort_keys=False)
    else:
        json.dump(data, sys.stdout, indent=2)
        sys.stdout.write("\n")


def build_table(
    columns: Sequence[str],
    rows: Iterable[Sequence[Any]],
    title: Optional[str] = None,
) -> Table:
    table = Table(title=title, box=box.SIMPLE, header_style="bold magenta", title_justify="left")
    for column in columns:
        table.add_column(column, style="cyan" if column == columns[0] else None, no_wrap=True)
    for row in rows:
        table.add_row(*[_cell(value) for value in row])
    return table


def build_key_value_table(rows: Iterable[Tuple[str, Any]], title: Optional[str] = None) -> Table:
    table = Table(show_header=False, box=None, padding=(0, 1), title=title, title_justify="left")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="yellow")
    for key, value in rows:
        table.add_row(str(key), _cell(value))
    return table


def _cell(value: Any) -> str:
    if value is None:
        return "-"
    if isinstance(value, bool):
        return "yes" if value else "no"
    if isinstance(value, (dict, list)):
        return json.dumps(value, indent=2)
    return str(value)
