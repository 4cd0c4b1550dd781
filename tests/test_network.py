"""Tests for network throughput sampling and interface enumeration."""
from __future__ import annotations

import socket
from types import SimpleNamespace
from unittest.mock import patch

import psutil
import pytest

from uipm.errors import SourceUnavailable
from uipm.models import NetSample
from uipm.network import (
    NetworkSampler,
    calc_rate,
    is_loopback,
    list_interfaces,
    parse_net_dev,
)

MB = 1024 * 1024


def _clock(*values: float):
    ticks = iter(values)
    return lambda: next(ticks)


class TestParseNetDev:
    def test_sums_non_loopback(self, proc_root):
        assert parse_net_dev((proc_root / "net" / "dev").read_text()) == (1_200_000, 600_000)

    def test_skips_short_and_malformed_lines(self):
        content = (
            "header 1\nheader 2\n"
            "  eth0: 10 0 0 0 0 0 0 0 20 0 0 0 0 0 0 0\n"
            "  bad line without colon\n"
            "  short: 1 2 3\n"
            "  junk: x 0 0 0 0 0 0 0 y\n"
        )
        assert parse_net_dev(content) == (10, 20)

    def test_headers_only(self):
        assert parse_net_dev("a\nb\n") == (0, 0)


class TestCalcRate:
    def test_first_sample_is_zero(self):
        rate = calc_rate(NetSample(), NetSample(rx=5 * MB, tx=MB, timestamp=10.0))
        assert (rate.rx, rate.tx) == (0.0, 0.0)

    def test_non_positive_elapsed_is_zero(self):
        prev = NetSample(rx=0, tx=0, timestamp=10.0)
        curr = NetSample(rx=MB, tx=MB, timestamp=10.0)
        assert calc_rate(prev, curr).to_dict() == {"rx": 0.0, "tx": 0.0}

    def test_rate_in_megabytes_per_second(self):
        prev = NetSample(rx=0, tx=0, timestamp=10.0)
        curr = NetSample(rx=4 * MB, tx=MB, timestamp=12.0)
        rate = calc_rate(prev, curr)
        assert rate.rx == pytest.approx(2.0)
        assert rate.tx == pytest.approx(0.5)

    def test_counter_reset_does_not_go_negative(self):
        prev = NetSample(rx=10 * MB, tx=10 * MB, timestamp=1.0)
        curr = NetSample(rx=MB, tx=MB, timestamp=2.0)
        assert calc_rate(prev, curr).to_dict() == {"rx": 0.0, "tx": 0.0}


@pytest.mark.linux
class TestNetworkSampler:
    def test_unseeded_first_sample_is_zero(self, proc_root):
        sampler = NetworkSampler(proc_root / "net" / "dev", clock=_clock(5.0))
        assert sampler.sample().to_dict() == {"rx": 0.0, "tx": 0.0}

    def test_rate_since_seed(self, proc_root):
        net_dev = proc_root / "net" / "dev"
        sampler = NetworkSampler(net_dev, clock=_clock(1.0, 3.0))
        sampler.seed()
        net_dev.write_text(
            "h1\nh2\n  eth0: %d 0 0 0 0 0 0 0 %d 0 0 0 0 0 0 0\n"
            % (1_200_000 + 2 * MB, 600_000 + MB)
        )

        rate = sampler.sample()

        assert rate.rx == pytest.approx(1.0)
        assert rate.tx == pytest.approx(0.5)

    def test_seed_failure_is_not_fatal(self, tmp_path):
        sampler = NetworkSampler(tmp_path / "missing", clock=_clock(1.0))
        sampler.seed()

    def test_sample_failure_raises(self, tmp_path):
        sampler = NetworkSampler(tmp_path / "missing", clock=_clock(1.0))
        with pytest.raises(SourceUnavailable):
            sampler.sample()

    def test_undecodable_interface_name_is_counted(self, proc_root):
        net_dev = proc_root / "net" / "dev"
        with net_dev.open("ab") as fh:
            fh.write(b"  w\xff0: 10 0 0 0 0 0 0 0 20 0 0 0 0 0 0 0\n")
        sampler = NetworkSampler(net_dev, clock=_clock(1.0, 2.0, 3.0))

        sampler.seed()

        assert sampler.read() == NetSample(rx=1_200_010, tx=600_020, timestamp=2.0)
        assert sampler.sample().to_dict() == {"rx": 0.0, "tx": 0.0}


def _addr(family, address):
    return SimpleNamespace(family=family, address=address, netmask=None, broadcast=None, ptp=None)


class TestListInterfaces:
    @patch("psutil.net_if_stats")
    @patch("psutil.net_if_addrs")
    def test_partitions_addresses(self, mock_addrs, mock_stats):
        mock_addrs.return_value = {
            "lo": [_addr(socket.AF_INET, "127.0.0.1")],
            "eth0": [
                _addr(socket.AF_INET, "192.168.1.10"),
                _addr(socket.AF_INET6, "fe80::1%eth0"),
                _addr(psutil.AF_LINK, "aa:bb:cc:dd:ee:ff"),
            ],
            "wlan0": [_addr(psutil.AF_LINK, "11:22:33:44:55:66")],
        }
        mock_stats.return_value = {
            "lo": SimpleNamespace(flags="up,loopback,running"),
            "eth0": SimpleNamespace(flags="up,broadcast,running,multicast"),
            "wlan0": SimpleNamespace(flags="broadcast,multicast"),
        }

        result = list_interfaces()

        assert set(result) == {"eth0", "wlan0"}
        assert result["eth0"].to_dict() == {
            "ipv4": ["192.168.1.10"],
            "ipv6": ["fe80::1"],
            "mac": "aa:bb:cc:dd:ee:ff",
        }
        assert result["wlan0"].ipv4 == []
        assert result["wlan0"].ipv6 == []

    @patch("psutil.net_if_stats", side_effect=OSError("ioctl not supported"))
    @patch("psutil.net_if_addrs")
    def test_falls_back_to_name_without_stats(self, mock_addrs, _mock_stats):
        mock_addrs.return_value = {
            "lo": [_addr(socket.AF_INET, "127.0.0.1")],
            "eth0": [],
        }

        result = list_interfaces()

        assert list(result) == ["eth0"]
        assert result["eth0"].mac == ""

    @patch("psutil.net_if_addrs", side_effect=OSError("boom"))
    def test_enumeration_failure_raises(self, _mock_addrs):
        with pytest.raises(SourceUnavailable):
            list_interfaces()

    @pytest.mark.parametrize(
        "name,stats,expected",
        [
            ("lo0", {"lo0": SimpleNamespace(flags="up,loopback")}, True),
            ("lo", {"lo": SimpleNamespace(flags="up,running")}, False),
            ("lo", {}, True),
            ("eth0", {"eth0": SimpleNamespace(flags="")}, False),
        ],
    )
    def test_is_loopback_prefers_flags(self, name, stats, expected):
        assert is_loopback(name, stats) is expected
