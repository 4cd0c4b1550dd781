"""CPU, memory and uptime sampling from /proc."""
from __future__ import annotations

import logging
from pathlib import Path
import threading

from uipm.config import PathsConfig
from uipm.errors import SourceUnavailable
from uipm.models import CpuSample, MetricsSnapshot, Reading

CPU_FIELDS = ("user", "nice", "system", "idle", "iowait", "irq", "softirq", "steal")


def _to_int(value: str) -> int:
    try:
        return int(value)
    except ValueError:
        return 0


def parse_cpu_stat(content: str) -> CpuSample:
    """Parse the aggregate ``cpu`` line of /proc/stat."""
    for line in content.splitlines():
        if not line.startswith("cpu "):
            continue
        fields = line.split()
        if len(fields) < 9:
            break
        values = [_to_int(value) for value in fields[1:9]]
        return CpuSample(**dict(zip(CPU_FIELDS, values)))
    raise SourceUnavailable("/proc/stat", "cpu line not found")


def calc_metrics(prev: CpuSample, curr: CpuSample) -> tuple[int, int]:
    """Return (cpu_pct, iowait_pct) for the interval between two samples.

    A zero or negative total delta (sampled too fast, or a counter wrapped)
    reports 0% instead of dividing.
    """
    total = curr.total - prev.total
    if total <= 0:
        return 0, 0
    idle = max(curr.idle_total - prev.idle_total, 0)
    iowait = max(curr.iowait - prev.iowait, 0)
    cpu_pct = max(total - idle, 0) * 100 // total
    io_pct = iowait * 100 // total
    return min(cpu_pct, 100), min(io_pct, 100)


def parse_meminfo(content: str) -> int:
    total = 0
    available = 0
    for line in content.splitlines():
        parts = line.split()
        if len(parts) < 2:
            continue
        if parts[0] == "MemTotal:":
            total = _to_int(parts[1])
        elif parts[0] == "MemAvailable:":
            available = _to_int(parts[1])
    if total == 0:
        return 0
    return max(total - available, 0) * 100 // total


def format_uptime(content: str) -> str:
    """Format /proc/uptime as ``"{d}d {h}h {m}m"``.

    Raises ValueError or OverflowError (e.g. ``inf``) when malformed.
    """
    fields = content.split()
    if not fields:
        raise ValueError("empty uptime")
    total = int(float(fields[0]))
    days = total // 86400
    hours = (total % 86400) // 3600
    minutes = (total % 3600) // 60
    return f"{days}d {hours}h {minutes}m"


def _read_text(path: Path) -> str:
    try:
        return path.read_bytes().decode(errors="replace")
    except OSError as exc:
        raise SourceUnavailable(str(path), exc.strerror or str(exc)) from exc


class ResourceSampler:
    def __init__(self, paths: PathsConfig) -> None:
        self.paths = paths
        self.logger = logging.getLogger(self.__class__.__name__)
        self._lock = threading.Lock()
        self._prev: CpuSample | None = None

    def read_cpu(self) -> CpuSample:
        return parse_cpu_stat(_read_text(self.paths.cpu_stat))

    def seed(self) -> None:
        """Take the initial CPU sample; without it there is nothing to diff against."""
        sample = self.read_cpu()
        with self._lock:
            self._prev = sample
        self.logger.debug("Seeded CPU sample: %s", sample)

    def read_ram(self) -> Reading[int]:
        try:
            content = _read_text(self.paths.meminfo)
        except SourceUnavailable as exc:
            return Reading.fallback(0, str(exc))
        return Reading.ok(parse_meminfo(content))

    def read_uptime(self) -> Reading[str]:
        try:
            return Reading.ok(format_uptime(_read_text(self.paths.uptime)))
        except (SourceUnavailable, ValueError, OverflowError) as exc:
            return Reading.fallback("unknown", str(exc))

    def sample(self) -> MetricsSnapshot:
        with self._lock:
            curr = self.read_cpu()
            prev = self._prev if self._prev is not None else curr
            cpu_pct, io_pct = calc_metrics(prev, curr)
            self._prev = curr

        ram = self.read_ram()
        uptime = self.read_uptime()
        degraded = []
        for name, reading in (("ram", ram), ("uptime", uptime)):
            if reading.degraded:
                self.logger.warning("Using default %s value: %s", name, reading.reason)
                degraded.append(name)
        return MetricsSnapshot(
            cpu=cpu_pct,
            ram=ram.value,
            uptime=uptime.value,
            iowait=io_pct,
            degraded=tuple(degraded),
        )
