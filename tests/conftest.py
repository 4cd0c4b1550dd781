"""Pytest configuration and shared fixtures."""
from __future__ import annotations

from pathlib import Path

import pytest

from uipm.commands import CommandErrorLog, CommandRunner
from uipm.config import AppConfig, PathsConfig

PROC_STAT = """cpu  100 0 50 800 50 0 0 0 0 0
cpu0 50 0 25 400 25 0 0 0 0 0
intr 12345
"""

MEMINFO = """MemTotal:        1000000 kB
MemFree:          200000 kB
MemAvailable:     250000 kB
Buffers:           10000 kB
"""

UPTIME = "93784.56 180000.12\n"

NET_DEV = """Inter-|   Receive                                                |  Transmit
 face |bytes    packets errs drop fifo frame compressed multicast|bytes    packets errs drop fifo colls carrier compressed
    lo: 9999999    100    0    0    0     0          0         0  9999999     100    0    0    0     0       0          0
  eth0: 1000000    800    0    0    0     0          0         0   500000     400    0    0    0     0       0          0
 wlan0:  200000    100    0    0    0     0          0         0   100000      50    0    0    0     0       0          0
"""


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "linux: mark test as reading Linux /proc or sysfs layouts"
    )
    config.addinivalue_line(
        "markers", "usb: mark test as USB device manager test"
    )
    config.addinivalue_line(
        "markers", "wireless: mark test as wireless scanner test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as integration test"
    )


@pytest.fixture
def proc_root(tmp_path):
    """Fake /proc with stat, meminfo, uptime and net/dev."""
    root = tmp_path / "proc"
    (root / "net").mkdir(parents=True)
    (root / "stat").write_text(PROC_STAT)
    (root / "meminfo").write_text(MEMINFO)
    (root / "uptime").write_text(UPTIME)
    (root / "net" / "dev").write_text(NET_DEV)
    return root


@pytest.fixture
def sysfs_usb(tmp_path):
    root = tmp_path / "usb"
    root.mkdir()
    return root


@pytest.fixture
def usb_device(sysfs_usb):
    """Factory creating fake /sys/bus/usb/devices/<busid> entries."""

    def make(busid: str, **attrs: str) -> Path:
        device = sysfs_usb / busid
        device.mkdir(parents=True)
        for name, value in attrs.items():
            (device / name).write_text(f"{value}\n")
        return device

    return make


@pytest.fixture
def sysfs_net(tmp_path):
    root = tmp_path / "net"
    root.mkdir()
    return root


@pytest.fixture
def app_config(proc_root, sysfs_usb, sysfs_net):
    """AppConfig pointing every source at the fake trees."""
    return AppConfig(
        paths=PathsConfig(
            proc_root=str(proc_root),
            sysfs_net=str(sysfs_net),
            sysfs_usb=str(sysfs_usb),
        )
    )


@pytest.fixture
def error_log():
    return CommandErrorLog()


@pytest.fixture
def runner(error_log):
    return CommandRunner(error_log)
