"""Network endpoint of a node."""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass


@dataclass(eq=False)
class NodeIPEndpoint:
    """Host and port a node connects to.

    Endpoints compare and hash by the host text joined with the port number.
    """

    host: str = ""
    port: int = 0
    ipv6: bool = False

    @classmethod
    def from_address(
        cls, address: str | ipaddress.IPv4Address | ipaddress.IPv6Address, port: int
    ) -> NodeIPEndpoint:
        """Build an endpoint from an IP address; raises ValueError if it is not one."""
        ip = ipaddress.ip_address(address)
        return cls(str(ip), port, ip.version == 6)

    def _key(self) -> str:
        return f"{self.host}{self.port}"

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, NodeIPEndpoint):
            return NotImplemented
        return self._key() < other._key()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, NodeIPEndpoint):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self) -> int:
        return hash(self._key())