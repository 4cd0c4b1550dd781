from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
import configparser

from uipm.ports import PortMapping, parse_port_mappings


@dataclass(frozen=True)
class PathsConfig:
    proc_root: str = "/proc"
    sysfs_net: str = "/sys/class/net"
    sysfs_usb: str = "/sys/bus/usb/devices"

    @property
    def cpu_stat(self) -> Path:
        return Path(self.proc_root) / "stat"

    @property
    def meminfo(self) -> Path:
        return Path(self.proc_root) / "meminfo"

    @property
    def uptime(self) -> Path:
        return Path(self.proc_root) / "uptime"

    @property
    def net_dev(self) -> Path:
        return Path(self.proc_root) / "net" / "dev"


@dataclass(frozen=True)
class ToolsConfig:
    iwconfig_path: str = "iwconfig"
    iwlist_path: str = "iwlist"
    usbip_path: str = "usbip"


@dataclass(frozen=True)
class WirelessConfig:
    settle_s: float = 0.3


@dataclass(frozen=True)
class CommandsConfig:
    redact_prefixes: tuple[str, ...] = ("--authkey=",)


@dataclass(frozen=True)
class AgentConfig:
    interval_s: int = 5
    ports: list[PortMapping] = field(default_factory=list)


@dataclass(frozen=True)
class AppConfig:
    paths: PathsConfig = field(default_factory=PathsConfig)
    tools: ToolsConfig = field(default_factory=ToolsConfig)
    wireless: WirelessConfig = field(default_factory=WirelessConfig)
    commands: CommandsConfig = field(default_factory=CommandsConfig)
    agent: AgentConfig = field(default_factory=AgentConfig)


def _get_list(value: str | None) -> list[str]:
    if value is None:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def default_config() -> AppConfig:
    return AppConfig()


def load_config(path: str | Path) -> AppConfig:
    parser = configparser.ConfigParser()
    read_files = parser.read(path)
    if not read_files:
        raise FileNotFoundError(f"Config file not found: {path}")

    defaults = default_config()

    # Every section is optional; parser.get with fallback covers missing ones
    paths = PathsConfig(
        proc_root=parser.get("paths", "proc_root", fallback=defaults.paths.proc_root),
        sysfs_net=parser.get("paths", "sysfs_net", fallback=defaults.paths.sysfs_net),
        sysfs_usb=parser.get("paths", "sysfs_usb", fallback=defaults.paths.sysfs_usb),
    )

    tools = ToolsConfig(
        iwconfig_path=parser.get("tools", "iwconfig_path", fallback="iwconfig"),
        iwlist_path=parser.get("tools", "iwlist_path", fallback="iwlist"),
        usbip_path=parser.get("tools", "usbip_path", fallback="usbip"),
    )

    settle_ms = parser.getint("wireless", "settle_ms", fallback=300)
    wireless = WirelessConfig(settle_s=max(0, settle_ms) / 1000)

    prefixes = _get_list(parser.get("commands", "redact_prefixes", fallback=None))
    commands = CommandsConfig(
        redact_prefixes=tuple(prefixes) if prefixes else defaults.commands.redact_prefixes,
    )

    agent = AgentConfig(
        interval_s=parser.getint("agent", "interval_s", fallback=5),
        ports=parse_port_mappings(
            _get_list(parser.get("ports", "mappings", fallback=None))
        ),
    )

    return AppConfig(
        paths=paths,
        tools=tools,
        wireless=wireless,
        commands=commands,
        agent=agent,
    )
