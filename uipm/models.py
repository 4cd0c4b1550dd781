from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Reading(Generic[T]):
    """A best-effort read; ``degraded`` marks that ``value`` is the default."""

    value: T
    degraded: bool = False
    reason: str | None = None

    @classmethod
    def ok(cls, value: T) -> "Reading[T]":
        return cls(value=value)

    @classmethod
    def fallback(cls, value: T, reason: str) -> "Reading[T]":
        return cls(value=value, degraded=True, reason=reason)


@dataclass(frozen=True)
class CpuSample:
    user: int = 0
    nice: int = 0
    system: int = 0
    idle: int = 0
    iowait: int = 0
    irq: int = 0
    softirq: int = 0
    steal: int = 0

    @property
    def idle_total(self) -> int:
        return self.idle + self.iowait

    @property
    def total(self) -> int:
        return (
            self.user
            + self.nice
            + self.system
            + self.idle
            + self.iowait
            + self.irq
            + self.softirq
            + self.steal
        )


@dataclass(frozen=True)
class MetricsSnapshot:
    cpu: int
    ram: int
    uptime: str
    iowait: int = 0
    degraded: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {"cpu": self.cpu, "ram": self.ram, "uptime": self.uptime}


@dataclass(frozen=True)
class NetSample:
    rx: int = 0
    tx: int = 0
    timestamp: float | None = None


@dataclass(frozen=True)
class NetworkRate:
    rx: float = 0.0
    tx: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {"rx": self.rx, "tx": self.tx}


@dataclass(frozen=True)
class InterfaceInfo:
    ipv4: list[str] = field(default_factory=list)
    ipv6: list[str] = field(default_factory=list)
    mac: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"ipv4": list(self.ipv4), "ipv6": list(self.ipv6), "mac": self.mac}


@dataclass(frozen=True)
class WifiNetwork:
    ssid: str
    signal: int
    security: str = "open"

    def to_dict(self) -> dict[str, Any]:
        return {"ssid": self.ssid, "signal": self.signal, "security": self.security}


@dataclass(frozen=True)
class UsbDevice:
    busid: str
    vendor_id: str
    product_id: str = ""
    name: str = ""
    port: int = 0
    occupied: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "busid": self.busid,
            "vendorId": self.vendor_id,
            "productId": self.product_id,
            "name": self.name,
            "port": self.port,
            "occupied": self.occupied,
        }


@dataclass(frozen=True)
class CommandErrorRecord:
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {"message": self.message}
