"""Port-forwarding interface.

The forwarding subsystem itself lives outside this package; the agent only
needs something that can move from one set of mappings to another.
"""
from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Protocol, Sequence


@dataclass(frozen=True)
class PortMapping:
    name: str
    listen_port: int
    target: str


class PortMapper(Protocol):
    def apply_ports(
        self,
        old: Sequence[PortMapping] | None,
        new: Sequence[PortMapping],
    ) -> None: ...


def parse_port_mappings(items: list[str]) -> list[PortMapping]:
    """Parse ``name:listen_port:target`` entries, skipping malformed ones."""
    logger = logging.getLogger(__name__)
    mappings: list[PortMapping] = []
    for item in items:
        parts = item.split(":", 2)
        if len(parts) != 3:
            logger.warning("Ignoring malformed port mapping %r", item)
            continue
        name, port, target = (part.strip() for part in parts)
        try:
            listen_port = int(port)
        except ValueError:
            logger.warning("Ignoring port mapping %r with invalid port", item)
            continue
        mappings.append(PortMapping(name=name, listen_port=listen_port, target=target))
    return mappings


class NullPortMapper:
    """Logs mapping changes without touching the network stack."""

    def __init__(self) -> None:
        self.logger = logging.getLogger(self.__class__.__name__)

    def apply_ports(
        self,
        old: Sequence[PortMapping] | None,
        new: Sequence[PortMapping],
    ) -> None:
        previous = set(old or [])
        current = set(new)
        for mapping in sorted(previous - current, key=lambda m: m.listen_port):
            self.logger.info("Removing port mapping %s (%s)", mapping.name, mapping.listen_port)
        for mapping in sorted(current - previous, key=lambda m: m.listen_port):
            self.logger.info(
                "Adding port mapping %s (%s -> %s)",
                mapping.name,
                mapping.listen_port,
                mapping.target,
            )
