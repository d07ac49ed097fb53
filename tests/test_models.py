from datetime import datetime, timezone

import pytest

from syncthing_cli.formatting import format_bytes, format_duration_since, format_uptime
from syncthing_cli.models import (
    Completion,
    SystemStatus,
    devices_from_json,
    errors_from_json,
    events_from_json,
    folders_from_json,
    needed_files_from_json,
    pending_devices_from_json,
    pending_folders_from_json,
)

NOW = datetime(2024, 1, 2, 12, 0, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "value,expected",
    [
        (0, "0 B"),
        (1023, "1023 B"),
        (1024, "1.0 KB"),
        (1536, "1.5 KB"),
        (5 * 1024 ** 2, "5.0 MB"),
        (3 * 1024 ** 3, "3.0 GB"),
        (2 * 1024 ** 4, "2.0 TB"),
    ],
)
def test_format_bytes(value: int, expected: str) -> None:
    assert format_bytes(value) == expected


def test_format_uptime() -> None:
    assert format_uptime(3600 * 5 + 60 * 7 + 12) == "5h 7m"


@pytest.mark.parametrize(
    "timestamp,expected",
    [
        ("2024-01-01T12:00:00Z", "1d ago"),
        ("2024-01-02T09:30:00+00:00", "2h ago"),
        ("2024-01-02T13:54:30.123456789+02:00", "5m ago"),
        ("2024-01-02T11:59:45Z", "just now"),
        ("0001-01-01T00:00:00Z", "never"),
        (None, "never"),
        ("garbage", "garbage"),
    ],
)
def test_format_duration_since(timestamp, expected: str) -> None:
    assert format_duration_since(timestamp, now=NOW) == expected


def test_system_status_tolerates_missing_fields() -> None:
    status = SystemStatus.from_json({"uptime": 3600})
    assert status.uptime == 3600
    assert status.alloc == 0
    assert status.my_id == ""


def test_completion_defaults_to_complete() -> None:
    assert Completion.from_json({}).completion == 100.0


def test_folders_merge_stats() -> None:
    folders = folders_from_json(
        [
            {"id": "folder1", "label": "Documents", "paused": False},
            {"id": "folder2", "label": "", "paused": True},
        ],
        {"folder1": {"lastScan": "2024-01-01T00:00:00Z"}},
    )

    assert [f.display_name for f in folders] == ["Documents", "folder2"]
    assert [f.state for f in folders] == ["active", "paused"]
    assert folders[0].last_scan == "2024-01-01T00:00:00Z"
    assert folders[1].last_scan is None


def test_devices_merge_connections_and_stats() -> None:
    devices = devices_from_json(
        [
            {"deviceID": "ABC1234-XYZ", "name": "Laptop"},
            {"deviceID": "DEF4567-XYZ", "name": ""},
        ],
        {"connections": {"ABC1234-XYZ": {"connected": True, "address": "10.0.0.2:22000"}}},
        {"DEF4567-XYZ": {"lastSeen": "2024-01-01T00:00:00Z"}},
    )

    assert devices[0].state == "connected"
    assert devices[0].address == "10.0.0.2:22000"
    assert devices[0].short_id == "ABC1234"
    assert devices[1].state == "offline"
    assert devices[1].display_name == "DEF4567-XYZ"
    assert devices[1].last_seen == "2024-01-01T00:00:00Z"


def test_errors_null_list() -> None:
    assert errors_from_json({"errors": None}) == []
    entries = errors_from_json({"errors": [{"when": "2024-01-01T00:00:00Z", "message": "Test error"}]})
    assert entries[0].message == "Test error"


def test_events_newest_first_and_limited() -> None:
    events = events_from_json(
        [
            {"id": 1, "type": "Starting", "time": "t1"},
            {"id": 2, "type": "StartupComplete", "time": "t2"},
            {"id": 3, "type": "FolderSummary", "time": "t3"},
        ],
        limit=2,
    )
    assert [e.id for e in events] == [3, 2]


def test_pending_devices() -> None:
    pending = pending_devices_from_json(
        {"P56IOI7-MZJNU2Y": {"name": "phone", "address": "192.168.1.5:22000", "time": "t"}}
    )
    assert pending[0].name == "phone"
    assert pending[0].short_id == "P56IOI7"


def test_pending_folders_flattens_offers() -> None:
    pending = pending_folders_from_json(
        {
            "cpkn4-57ysy": {
                "offeredBy": {
                    "P56IOI7-MZJNU2Y": {"time": "t", "label": "Photos"},
                    "DOVII4U-SQEEESM": {"time": "t", "label": ""},
                }
            }
        }
    )
    assert {(p.label, p.offered_by_short) for p in pending} == {
        ("Photos", "P56IOI7"),
        ("cpkn4-57ysy", "DOVII4U"),
    }


def test_needed_files_keep_queue_order() -> None:
    needed = needed_files_from_json(
        {
            "progress": [{"name": "a.bin", "size": 10}],
            "queued": None,
            "rest": [{"name": "b.txt", "size": 20}, {"name": "c.txt"}],
        }
    )
    assert [(f.name, f.queue) for f in needed] == [("a.bin", "progress"), ("b.txt", "rest"), ("c.txt", "rest")]
    assert needed[2].size == 0
