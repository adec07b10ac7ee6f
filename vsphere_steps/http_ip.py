"""Finding the host address that guests use to reach the HTTP server."""

from __future__ import annotations

import ipaddress
import socket
import threading
from typing import Iterator, Union

import psutil

from .multistep import StateBag, Step, StepAction

IPNetwork = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]
IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


def _interface_addresses() -> Iterator[IPAddress]:
    for addrs in psutil.net_if_addrs().values():
        for addr in addrs:
            if addr.family not in (socket.AF_INET, socket.AF_INET6):
                continue
            text = addr.address.split("%", 1)[0]
            try:
                yield ipaddress.ip_address(text)
            except ValueError:
                continue


def get_host_ip(ip: str, network: IPNetwork | None) -> str:
    """Return the given IP if valid, else a local non-loopback address.

    An address inside ``network`` is preferred; otherwise the first IPv4
    address is used. Raises ValueError for an invalid ``ip`` and
    LookupError when no suitable address exists.
    """
    if ip:
        try:
            ipaddress.ip_address(ip)
        except ValueError:
            raise ValueError("invalid IP address") from None
        return ip

    candidates = [a for a in _interface_addresses() if not a.is_loopback]

    if network is not None:
        for address in candidates:
            if address.version == network.version and address in network:
                return str(address)

    for address in candidates:
        if address.version == 4:
            return str(address)
    raise LookupError("IP not found")


class StepHTTPIPDiscover(Step):
    """Store the HTTP server address in the state as "http_ip"."""

    def __init__(self, http_ip: str = "", network: IPNetwork | None = None):
        self.http_ip = http_ip
        self.network = network

    def run(self, state: StateBag, cancel: threading.Event | None = None) -> StepAction:
        try:
            ip = get_host_ip(self.http_ip, self.network)
        except (ValueError, LookupError, OSError) as err:
            state.put("error", err)
            return StepAction.HALT
        state.put("http_ip", ip)
        return StepAction.CONTINUE

    def cleanup(self, state: StateBag) -> None:
        """Nothing to undo."""