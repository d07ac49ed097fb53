"""Read-only projections of daemon responses used for display."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional


def _int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _str(value: Any, default: str = "") -> str:
    return value if isinstance(value, str) else default


def _mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def short_id(device_id: str) -> str:
    """First block of a device ID, as Syncthing's own GUI abbreviates it."""

    return device_id[:7]


@dataclass(frozen=True)
class SystemStatus:
    my_id: str
    uptime: int
    alloc: int
    sys: int

    @classmethod
    def from_json(cls, data: Any) -> "SystemStatus":
        data = _mapping(data)
        return cls(
            my_id=_str(data.get("myID")),
            uptime=_int(data.get("uptime")),
            alloc=_int(data.get("alloc")),
            sys=_int(data.get("sys")),
        )


@dataclass(frozen=True)
class VersionInfo:
    version: str
    long_version: str = ""
    os: str = ""
    arch: str = ""

    @classmethod
    def from_json(cls, data: Any) -> "VersionInfo":
        data = _mapping(data)
        return cls(
            version=_str(data.get("version"), "unknown"),
            long_version=_str(data.get("longVersion")),
            os=_str(data.get("os")),
            arch=_str(data.get("arch")),
        )


@dataclass(frozen=True)
class Completion:
    completion: float = 100.0
    global_bytes: int = 0
    need_bytes: int = 0
    global_items: int = 0
    need_items: int = 0

    @classmethod
    def from_json(cls, data: Any) -> "Completion":
        data = _mapping(data)
        try:
            pct = float(data.get("completion", 100.0))
        except (TypeError, ValueError):
            pct = 100.0
        return cls(
            completion=pct,
            global_bytes=_int(data.get("globalBytes")),
            need_bytes=_int(data.get("needBytes")),
            global_items=_int(data.get("globalItems")),
            need_items=_int(data.get("needItems")),
        )


@dataclass(frozen=True)
class FolderSummary:
    id: str
    label: str
    path: str = ""
    type: str = ""
    paused: bool = False
    last_scan: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.label or self.id

    @property
    def state(self) -> str:
        return "paused" if self.paused else "active"


def folders_from_json(folders: Any, stats: Any = None) -> List[FolderSummary]:
    """Combine ``/rest/config/folders`` with ``/rest/stats/folder``."""

    stats = _mapping(stats)
    summaries: List[FolderSummary] = []
    for folder in folders if isinstance(folders, list) else []:
        folder = _mapping(folder)
        folder_id = _str(folder.get("id"), "?")
        summaries.append(
            FolderSummary(
                id=folder_id,
                label=_str(folder.get("label")),
                path=_str(folder.get("path")),
                type=_str(folder.get("type")),
                paused=bool(folder.get("paused", False)),
                last_scan=_mapping(stats.get(folder_id)).get("lastScan"),
            )
        )
    return summaries


@dataclass(frozen=True)
class DeviceSummary:
    device_id: str
    name: str
    paused: bool = False
    connected: bool = False
    address: str = ""
    last_seen: Optional[str] = None

    @property
    def short_id(self) -> str:
        return short_id(self.device_id)

    @property
    def display_name(self) -> str:
        return self.name or self.device_id

    @property
    def state(self) -> str:
        if self.paused:
            return "paused"
        return "connected" if self.connected else "offline"


def devices_from_json(devices: Any, connections: Any = None, stats: Any = None) -> List[DeviceSummary]:
    """Combine configured devices with live connections and device stats."""

    live = _mapping(_mapping(connections).get("connections"))
    stats = _mapping(stats)
    summaries: List[DeviceSummary] = []
    for device in devices if isinstance(devices, list) else []:
        device = _mapping(device)
        device_id = _str(device.get("deviceID"), "?")
        connection = _mapping(live.get(device_id))
        summaries.append(
            DeviceSummary(
                device_id=device_id,
                name=_str(device.get("name")),
                paused=bool(device.get("paused", False)),
                connected=bool(connection.get("connected", False)),
                address=_str(connection.get("address")),
                last_seen=_mapping(stats.get(device_id)).get("lastSeen"),
            )
        )
    return summaries


@dataclass(frozen=True)
class SyncError:
    when: str
    message: str

    @classmethod
    def from_json(cls, data: Any) -> "SyncError":
        data = _mapping(data)
        return cls(
            when=_str(data.get("when"), "?"),
            message=_str(data.get("message"), "?"),
        )


def errors_from_json(data: Any) -> List[SyncError]:
    # The daemon reports "errors": null when there are none.
    entries = _mapping(data).get("errors") or []
    return [SyncError.from_json(entry) for entry in entries]


@dataclass(frozen=True)
class FolderFileError:
    path: str
    error: str

    @classmethod
    def from_json(cls, data: Any) -> "FolderFileError":
        data = _mapping(data)
        return cls(path=_str(data.get("path"), "?"), error=_str(data.get("error"), "?"))


def folder_errors_from_json(data: Any) -> List[FolderFileError]:
    entries = _mapping(data).get("errors") or []
    return [FolderFileError.from_json(entry) for entry in entries]


@dataclass(frozen=True)
class NeededFile:
    name: str
    size: int
    queue: str


def needed_files_from_json(data: Any) -> List[NeededFile]:
    """Flatten the ``progress``, ``queued`` and ``rest`` lists of ``/rest/db/need``."""

    data = _mapping(data)
    needed: List[NeededFile] = []
    for queue in ("progress", "queued", "rest"):
        for entry in data.get(queue) or []:
            entry = _mapping(entry)
            needed.append(NeededFile(name=_str(entry.get("name"), "?"), size=_int(entry.get("size")), queue=queue))
    return needed


@dataclass(frozen=True)
class Event:
    id: int
    type: str
    time: str

    @classmethod
    def from_json(cls, data: Any) -> "Event":
        data = _mapping(data)
        return cls(
            id=_int(data.get("id")),
            type=_str(data.get("type"), "?"),
            time=_str(data.get("time"), "?"),
        )


def events_from_json(data: Any, limit: Optional[int] = None) -> List[Event]:
    """Newest events first, at most ``limit`` of them."""

    events = [Event.from_json(entry) for entry in (data if isinstance(data, list) else [])]
    events.reverse()
    return events[:limit] if limit is not None else events


@dataclass(frozen=True)
class PendingDevice:
    device_id: str
    name: str = ""
    address: str = ""
    time: Optional[str] = None

    @property
    def short_id(self) -> str:
        return short_id(self.device_id)


def pending_devices_from_json(data: Any) -> List[PendingDevice]:
    return [
        PendingDevice(
            device_id=device_id,
            name=_str(_mapping(info).get("name"), "unknown"),
            address=_str(_mapping(info).get("address")),
            time=_mapping(info).get("time"),
        )
        for device_id, info in _mapping(data).items()
    ]


@dataclass(frozen=True)
class PendingFolder:
    folder_id: str
    label: str
    offered_by: str
    time: Optional[str] = None

    @property
    def offered_by_short(self) -> str:
        return short_id(self.offered_by)


def pending_folders_from_json(data: Any) -> List[PendingFolder]:
    """Flatten ``{folderID: {"offeredBy": {deviceID: {...}}}}``."""

    pending: List[PendingFolder] = []
    for folder_id, info in _mapping(data).items():
        offers: Dict[str, Any] = dict(_mapping(_mapping(info).get("offeredBy")))
        for device_id, offer in offers.items():
            offer = _mapping(offer)
            pending.append(
                PendingFolder(
                    folder_id=folder_id,
                    label=_str(offer.get("label")) or folder_id,
                    offered_by=device_id,
                    time=offer.get("time"),
                )
            )
    return pending
