from __future__ import annotations

import logging
from typing import Any

from uipm.commands import CommandErrorLog, CommandRunner
from uipm.config import AppConfig
from uipm.errors import SourceUnavailable
from uipm.network import NetworkSampler, list_interfaces
from uipm.resources import ResourceSampler
from uipm.usb import UsbDeviceManager
from uipm.wireless import WirelessScanner
from uipm.version import __version__


class TelemetryAgent:
    """Owns every sampler and the state they share.

    Each public method returns a JSON-serializable value for one dashboard
    endpoint and is safe to call from concurrent request threads.
    """

    def __init__(self, config: AppConfig, runner: CommandRunner | None = None) -> None:
        self.config = config
        self.logger = logging.getLogger(self.__class__.__name__)
        if runner is None:
            runner = CommandRunner(CommandErrorLog(), config.commands.redact_prefixes)
        self.runner = runner
        self.error_log = runner.error_log
        self.resources = ResourceSampler(config.paths)
        self.net = NetworkSampler(config.paths.net_dev)
        self.wireless = WirelessScanner(
            runner,
            sysfs_net=config.paths.sysfs_net,
            iwconfig_path=config.tools.iwconfig_path,
            iwlist_path=config.tools.iwlist_path,
            settle_s=config.wireless.settle_s,
        )
        self.usb = UsbDeviceManager(
            runner,
            sysfs_usb=config.paths.sysfs_usb,
            usbip_path=config.tools.usbip_path,
        )

    def seed(self) -> None:
        """Take the startup samples. Raises SourceUnavailable if CPU counters are missing."""
        self.resources.seed()
        self.net.seed()

    def metrics(self) -> dict[str, Any]:
        return self.resources.sample().to_dict()

    def network(self) -> dict[str, Any]:
        return self.net.sample().to_dict()

    def interfaces(self) -> dict[str, Any]:
        return {name: info.to_dict() for name, info in list_interfaces().items()}

    def wifi_scan(self) -> list[dict[str, Any]]:
        return [network.to_dict() for network in self.wireless.scan()]

    def usb_devices(self) -> list[dict[str, Any]]:
        return [device.to_dict() for device in self.usb.list_devices()]

    def errors(self) -> list[dict[str, Any]]:
        return [record.to_dict() for record in self.error_log.drain()]

    def version(self) -> dict[str, Any]:
        return {"version": __version__}

    def collect_all(self, include_wifi: bool = True) -> dict[str, Any]:
        """Collect every snapshot, omitting any whose source is unavailable."""
        collectors = [
            ("metrics", self.metrics),
            ("network", self.network),
            ("interfaces", self.interfaces),
            ("usb", self.usb_devices),
            ("version", self.version),
        ]
        if include_wifi:
            collectors.append(("wifi", self.wifi_scan))
        payload: dict[str, Any] = {}
        for key, collect in collectors:
            try:
                payload[key] = collect()
            except SourceUnavailable as exc:
                self.logger.warning("Skipping %s: %s", key, exc)
        # Drained last so failures from this round are included
        payload["errors"] = self.errors()
        return payload
