"""Hosts of a cluster and the ring that tracks them."""

from __future__ import annotations

import enum
import ipaddress
import itertools
import threading
from dataclasses import dataclass, field
from typing import Union

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


class HostState(enum.Enum):
    """Whether a host is believed to be reachable."""

    UP = "UP"
    DOWN = "DOWN"

    def __str__(self) -> str:
        return self.value


def _to_address(address: str | IPAddress | None) -> IPAddress | None:
    if address is None or isinstance(address, (ipaddress.IPv4Address, ipaddress.IPv6Address)):
        return address
    return ipaddress.ip_address(address)


@dataclass(eq=False)
class HostInfo:
    """A node of the cluster; two hosts are equal when their addresses are."""

    connect_address: IPAddress | None = None
    port: int = 9042
    host_id: str = ""
    data_center: str = ""
    rack: str = ""
    tokens: list[str] = field(default_factory=list)
    version: tuple[int, int, int] = (0, 0, 0)
    partitioner: str = ""
    schema_version: str = ""
    state: HostState = HostState.UP

    def __post_init__(self) -> None:
        self.connect_address = _to_address(self.connect_address)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, HostInfo):
            return NotImplemented
        return self is other or self.connect_address == other.connect_address

    def __hash__(self) -> int:
        return hash(self.connect_address)

    def is_up(self) -> bool:
        return self.state is HostState.UP

    def update(self, other: HostInfo) -> None:
        """Fill fields that are still empty from ``other``."""
        if other is self:
            return
        if not self.tokens:
            self.tokens = list(other.tokens)
        if self.version == (0, 0, 0):
            self.version = other.version
        if not self.host_id:
            self.host_id = other.host_id
        if not self.schema_version:
            self.schema_version = other.schema_version
        if not self.data_center:
            self.data_center = other.data_center
        if not self.rack:
            self.rack = other.rack
        if not self.partitioner:
            self.partitioner = other.partitioner


def _checked_key(host: HostInfo) -> str:
    address = host.connect_address
    if address is None or address.is_unspecified:
        raise ValueError(f"invalid host: {host!r}")
    return str(address)


class Ring:
    """The set of known hosts, keyed by connect address."""

    def __init__(self, endpoints: list[HostInfo] | None = None) -> None:
        self.endpoints: list[HostInfo] = list(endpoints or [])
        self._lock = threading.Lock()
        self._hosts: dict[str, HostInfo] = {}
        self._host_list: list[HostInfo] = []
        self._counter = itertools.count()

    def rr_host(self) -> HostInfo | None:
        """Return hosts in turn, or None when there are none."""
        with self._lock:
            if not self._host_list:
                return None
            return self._host_list[next(self._counter) % len(self._host_list)]

    def get_host(self, address: str | IPAddress) -> HostInfo | None:
        key = str(_to_address(address))
        with self._lock:
            return self._hosts.get(key)

    def all_hosts(self) -> list[HostInfo]:
        with self._lock:
            return list(self._hosts.values())

    def current_hosts(self) -> dict[str, HostInfo]:
        with self._lock:
            return dict(self._hosts)

    def add_host(self, host: HostInfo) -> bool:
        """Add or replace a host; return whether its address was already known."""
        key = _checked_key(host)
        with self._lock:
            existed = key in self._hosts
            if not existed:
                self._host_list.append(host)
            self._hosts[key] = host
        return existed

    def add_or_update(self, host: HostInfo) -> HostInfo:
        """Add the host, or merge it into the known one and return that."""
        existing, existed = self.add_host_if_missing(host)
        if existed:
            existing.update(host)
            return existing
        return host

    def add_host_if_missing(self, host: HostInfo) -> tuple[HostInfo, bool]:
        """Return the stored host for the address and whether it was already there."""
        key = _checked_key(host)
        with self._lock:
            existing = self._hosts.get(key)
            if existing is not None:
                return existing, True
            self._hosts[key] = host
            self._host_list.append(host)
            return host, False

    def remove_host(self, address: str | IPAddress) -> bool:
        ip = _to_address(address)
        key = str(ip)
        with self._lock:
            existed = key in self._hosts
            if existed:
                for position, host in enumerate(self._host_list):
                    if host.connect_address == ip:
                        del self._host_list[position]
                        break
            self._hosts.pop(key, None)
        return existed


class ClusterMetadata:
    """Cluster-wide facts such as the partitioner in use."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.partitioner = ""

    def set_partitioner(self, partitioner: str) -> None:
        with self._lock:
            if self.partitioner != partitioner:
                self.partitioner = partitioner