"""Network throughput sampling and interface enumeration."""
from __future__ import annotations

import logging
from pathlib import Path
import socket
import threading
import time
from typing import Any, Callable

import psutil

from uipm.errors import SourceUnavailable
from uipm.models import InterfaceInfo, NetSample, NetworkRate

LOOPBACK = "lo"
BYTES_PER_MB = 1024 * 1024


def parse_net_dev(content: str) -> tuple[int, int]:
    """Sum rx/tx bytes over every non-loopback interface in /proc/net/dev."""
    rx_total = 0
    tx_total = 0
    # Two header lines precede the per-interface table
    for line in content.splitlines()[2:]:
        name, sep, counters = line.partition(":")
        if not sep:
            continue
        if name.strip() == LOOPBACK:
            continue
        fields = counters.split()
        if len(fields) < 9:
            continue
        try:
            rx_total += int(fields[0])
            tx_total += int(fields[8])
        except ValueError:
            continue
    return rx_total, tx_total


def calc_rate(prev: NetSample, curr: NetSample) -> NetworkRate:
    if prev.timestamp is None or curr.timestamp is None:
        return NetworkRate()
    elapsed = curr.timestamp - prev.timestamp
    if elapsed <= 0:
        return NetworkRate()
    rx = max(curr.rx - prev.rx, 0) / elapsed / BYTES_PER_MB
    tx = max(curr.tx - prev.tx, 0) / elapsed / BYTES_PER_MB
    return NetworkRate(rx=rx, tx=tx)


class NetworkSampler:
    def __init__(self, net_dev: Path, clock: Callable[[], float] = time.monotonic) -> None:
        self.net_dev = net_dev
        self.clock = clock
        self.logger = logging.getLogger(self.__class__.__name__)
        self._lock = threading.Lock()
        self._prev = NetSample()

    def read(self) -> NetSample:
        try:
            content = self.net_dev.read_bytes().decode(errors="replace")
        except OSError as exc:
            raise SourceUnavailable(str(self.net_dev), exc.strerror or str(exc)) from exc
        rx, tx = parse_net_dev(content)
        return NetSample(rx=rx, tx=tx, timestamp=self.clock())

    def seed(self) -> None:
        """Record initial counters; on failure the first sample reports zero."""
        try:
            sample = self.read()
        except SourceUnavailable as exc:
            self.logger.warning("Initial network counters unavailable: %s", exc)
            return
        with self._lock:
            self._prev = sample

    def sample(self) -> NetworkRate:
        with self._lock:
            curr = self.read()
            rate = calc_rate(self._prev, curr)
            self._prev = curr
        return rate


def is_loopback(name: str, stats: dict[str, Any]) -> bool:
    entry = stats.get(name)
    flags = getattr(entry, "flags", "") if entry is not None else ""
    if flags:
        return "loopback" in flags.split(",")
    return name == LOOPBACK


def list_interfaces() -> dict[str, InterfaceInfo]:
    """Map each non-loopback interface to its IPv4/IPv6 addresses and MAC."""
    logger = logging.getLogger(__name__)
    try:
        addrs = psutil.net_if_addrs()
    except OSError as exc:
        raise SourceUnavailable("net_if_addrs", str(exc)) from exc
    # net_if_stats() can fail with OSError in containers without proper network support
    try:
        stats = psutil.net_if_stats()
    except OSError:
        logger.debug("Failed to get network interface stats (ioctl not supported).")
        stats = {}

    result: dict[str, InterfaceInfo] = {}
    for name, addr_list in addrs.items():
        if is_loopback(name, stats):
            continue
        ipv4: list[str] = []
        ipv6: list[str] = []
        mac = ""
        for addr in addr_list:
            if not addr.address:
                continue
            if addr.family == socket.AF_INET:
                ipv4.append(addr.address)
            elif addr.family == socket.AF_INET6:
                ipv6.append(addr.address.split("%", 1)[0])
            elif addr.family == psutil.AF_LINK:
                mac = addr.address
        result[name] = InterfaceInfo(ipv4=ipv4, ipv6=ipv6, mac=mac)
    return result
