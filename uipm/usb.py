"""USB device enumeration from sysfs with usbip-provided names."""
from __future__ import annotations

from dataclasses import replace
import enum
import logging
from pathlib import Path
import threading
from typing import Callable, Iterable

from uipm.commands import CommandRunner
from uipm.errors import CommandError
from uipm.models import UsbDevice

HUB_CLASS = "09"
ROOT_HUB_PREFIX = "usb"
EXPORTED_STATUS = "2"


def managed_port(busid: str) -> int:
    """Derive the labelled physical port from a bus id.

    Bus ids look like ``<bus>-<hop>.<hop>...``. The first hop is the on-board
    hub, so the user-facing port is the second hop regardless of how many
    hubs follow it; a single hop is a direct attachment.

    >>> managed_port("3-1.4"), managed_port("3-1.3.3.2.1"), managed_port("3-1")
    (4, 3, 1)
    """
    _, sep, chain = busid.partition("-")
    if not sep:
        return 0
    hops = chain.split(".")
    hop = hops[1] if len(hops) >= 2 else hops[0]
    try:
        return int(hop)
    except ValueError:
        return 0


def _read_attr(device_dir: Path, name: str) -> str | None:
    try:
        return (device_dir / name).read_bytes().decode(errors="replace").strip()
    except OSError:
        return None


def scan_sysfs_devices(root: str | Path) -> list[UsbDevice]:
    """List non-hub USB devices under ``/sys/bus/usb/devices``.

    Root hubs (``usbN``) and interface nodes (``1-1:1.0``) are skipped, as is
    any device whose vendor id cannot be read.
    """
    logger = logging.getLogger(__name__)
    root = Path(root)
    try:
        entries = sorted(root.iterdir(), key=lambda p: p.name)
    except OSError as exc:
        logger.warning("USB device tree %s unavailable: %s", root, exc)
        return []

    devices: list[UsbDevice] = []
    for entry in entries:
        busid = entry.name
        if busid.startswith(ROOT_HUB_PREFIX) or ":" in busid:
            continue
        if _read_attr(entry, "bDeviceClass") == HUB_CLASS:
            continue
        vendor_id = _read_attr(entry, "idVendor")
        if vendor_id is None:
            logger.debug("Skipping %s: idVendor unreadable.", busid)
            continue
        devices.append(
            UsbDevice(
                busid=busid,
                vendor_id=vendor_id,
                product_id=_read_attr(entry, "idProduct") or "",
                port=managed_port(busid),
                occupied=_read_attr(entry, "usbip_status") == EXPORTED_STATUS,
            )
        )
    return devices


class _ListState(enum.Enum):
    NO_RECORD = enum.auto()
    AWAITING_NAME = enum.auto()
    NAMED = enum.auto()


def parse_usbip_list(output: str) -> list[UsbDevice]:
    """Parse ``usbip list -l`` output into devices carrying their names.

    Each device starts with ``- busid <id> (<vid>:<pid>)``; the first
    non-empty line after it is the description, minus its trailing
    ``(vid:pid)``.
    """
    devices: list[UsbDevice] = []
    state = _ListState.NO_RECORD
    current: UsbDevice | None = None

    def flush() -> None:
        if current is not None:
            devices.append(current)

    for raw in output.splitlines():
        line = raw.strip()
        if line.startswith("- busid "):
            flush()
            parts = line.split()
            if len(parts) < 4:
                current = None
                state = _ListState.NO_RECORD
                continue
            busid = parts[2]
            vendor_id, sep, product_id = parts[3].strip("()").partition(":")
            if not sep:
                vendor_id, product_id = "", ""
            current = UsbDevice(
                busid=busid,
                vendor_id=vendor_id,
                product_id=product_id,
                port=managed_port(busid),
            )
            state = _ListState.AWAITING_NAME
        elif state is _ListState.AWAITING_NAME and current is not None and line:
            name = line
            idx = name.rfind(" (")
            if idx >= 0:
                name = name[:idx].strip()
            current = replace(current, name=name)
            state = _ListState.NAMED
    flush()
    return devices


class NameCache:
    """Bus id to product name; an empty name means "looked up, not found"."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._names: dict[str, str] = {}

    def ensure(self, busids: Iterable[str], fetch: Callable[[], dict[str, str]]) -> bool:
        """Call ``fetch`` only if some bus id has never been looked up.

        Returns True when a fetch was attempted. Bus ids still unknown
        afterwards are seeded with "" so a failed lookup is not retried on
        every request.
        """
        busids = list(busids)
        logger = logging.getLogger(__name__)
        with self._lock:
            if all(busid in self._names for busid in busids):
                return False
            try:
                self._names.update(fetch())
            except CommandError as exc:
                logger.warning("USB name lookup failed: %s", exc)
            for busid in busids:
                self._names.setdefault(busid, "")
            return True

    def names_for(self, busids: Iterable[str]) -> dict[str, str]:
        """Return names for ``busids`` and forget every other bus id."""
        busids = set(busids)
        with self._lock:
            self._names = {
                busid: name for busid, name in self._names.items() if busid in busids
            }
            return {busid: self._names.get(busid, "") for busid in busids}

    def snapshot(self) -> dict[str, str]:
        with self._lock:
            return dict(self._names)


class UsbDeviceManager:
    def __init__(
        self,
        runner: CommandRunner,
        sysfs_usb: str | Path = "/sys/bus/usb/devices",
        usbip_path: str = "usbip",
        cache: NameCache | None = None,
    ) -> None:
        self.runner = runner
        self.sysfs_usb = sysfs_usb
        self.usbip_path = usbip_path
        self.cache = cache if cache is not None else NameCache()
        self.logger = logging.getLogger(self.__class__.__name__)

    def _fetch_names(self) -> dict[str, str]:
        output = self.runner.run_capture(self.usbip_path, ["list", "-l"])
        return {
            device.busid: device.name
            for device in parse_usbip_list(output.decode(errors="replace"))
        }

    def list_devices(self) -> list[UsbDevice]:
        devices = scan_sysfs_devices(self.sysfs_usb)
        busids = [device.busid for device in devices]
        self.cache.ensure(busids, self._fetch_names)
        names = self.cache.names_for(busids)
        self.logger.debug("Enumerated %s USB devices.", len(devices))
        return [replace(device, name=names.get(device.busid, "")) for device in devices]
