"""Wireless network scanning via iwconfig/iwlist."""
from __future__ import annotations

import enum
import logging
from pathlib import Path
import time
from typing import Callable

import psutil

from uipm.commands import CommandRunner
from uipm.errors import CommandError
from uipm.models import WifiNetwork
from uipm.network import is_loopback

NO_SIGNAL = -100


class _ParseState(enum.Enum):
    NO_RECORD = enum.auto()
    BUILDING_RECORD = enum.auto()


class _CellBuilder:
    def __init__(self) -> None:
        self.ssid = ""
        self.signal = NO_SIGNAL
        self.security = "open"

    def feed(self, line: str) -> None:
        if line.startswith("ESSID:"):
            self.ssid = line[len("ESSID:"):].strip('"')

        marker = "Signal level="
        idx = line.find(marker)
        if idx >= 0:
            rest = line[idx + len(marker):].split()
            if rest:
                # "-40 dBm" or "70/100": take the leading integer
                token = rest[0].split("/", 1)[0]
                try:
                    self.signal = int(token)
                except ValueError:
                    pass

        if "WPA2" in line:
            self.security = "wpa2"
        elif "WPA Version" in line and self.security != "wpa2":
            self.security = "wpa"

    def build(self) -> WifiNetwork | None:
        if not self.ssid:
            return None
        return WifiNetwork(ssid=self.ssid, signal=self.signal, security=self.security)


def _is_cell_marker(line: str) -> bool:
    return "Cell " in line and "Address:" in line


def parse_iwlist(output: str) -> list[WifiNetwork]:
    """Parse ``iwlist <iface> scanning`` output.

    Cells without an ESSID are dropped. Networks sharing an SSID collapse to
    the strongest one, and the result is ordered strongest first.
    """
    networks: list[WifiNetwork] = []
    state = _ParseState.NO_RECORD
    cell: _CellBuilder | None = None

    for raw in output.splitlines():
        line = raw.strip()
        if _is_cell_marker(line):
            if state is _ParseState.BUILDING_RECORD and cell is not None:
                if (network := cell.build()) is not None:
                    networks.append(network)
            cell = _CellBuilder()
            state = _ParseState.BUILDING_RECORD
            continue
        if state is _ParseState.NO_RECORD or cell is None:
            continue
        cell.feed(line)

    if state is _ParseState.BUILDING_RECORD and cell is not None:
        if (network := cell.build()) is not None:
            networks.append(network)

    best: dict[str, WifiNetwork] = {}
    for network in networks:
        existing = best.get(network.ssid)
        if existing is None or network.signal > existing.signal:
            best[network.ssid] = network
    return sorted(best.values(), key=lambda n: n.signal, reverse=True)


def find_wireless_interface(sysfs_net: str | Path) -> str | None:
    """Return the first non-loopback interface with a ``wireless`` sysfs node."""
    logger = logging.getLogger(__name__)
    try:
        stats = psutil.net_if_stats()
    except OSError:
        logger.debug("Failed to list network interfaces.")
        return None
    for name in stats:
        if is_loopback(name, stats):
            continue
        if (Path(sysfs_net) / name / "wireless").exists():
            return name
    return None


class WirelessScanner:
    def __init__(
        self,
        runner: CommandRunner,
        sysfs_net: str | Path = "/sys/class/net",
        iwconfig_path: str = "iwconfig",
        iwlist_path: str = "iwlist",
        settle_s: float = 0.3,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.runner = runner
        self.sysfs_net = sysfs_net
        self.iwconfig_path = iwconfig_path
        self.iwlist_path = iwlist_path
        self.settle_s = settle_s
        self.sleep = sleep
        self.logger = logging.getLogger(self.__class__.__name__)

    def scan(self) -> list[WifiNetwork]:
        iface = find_wireless_interface(self.sysfs_net)
        if iface is None:
            self.logger.debug("No wireless interface found; skipping scan.")
            return []

        try:
            self.runner.run(self.iwconfig_path, [iface, "power", "on"])
        except CommandError:
            self.logger.debug("Power-on of %s failed; scanning anyway.", iface)
        self.sleep(self.settle_s)

        try:
            output = self.runner.run_capture(self.iwlist_path, [iface, "scanning"])
        except CommandError:
            return []
        networks = parse_iwlist(output.decode(errors="replace"))
        self.logger.debug("Found %s wireless networks on %s.", len(networks), iface)
        return networks
