"""Host selection policies that decide which hosts a query is sent to."""

from __future__ import annotations

import itertools
import threading
from dataclasses import dataclass
from typing import Any, Iterator, Protocol, Union

from .ring import HostInfo, IPAddress, _to_address


class CowHostList:
    """A copy-on-write list of hosts: readers get an immutable snapshot."""

    def __init__(self, hosts: list[HostInfo] | None = None) -> None:
        self._lock = threading.Lock()
        self._hosts: tuple[HostInfo, ...] = tuple(hosts or ())

    def __repr__(self) -> str:
        return f"CowHostList({list(self._hosts)!r})"

    def __len__(self) -> int:
        return len(self._hosts)

    def get(self) -> tuple[HostInfo, ...]:
        """Return the current snapshot of hosts."""
        return self._hosts

    def set(self, hosts: list[HostInfo]) -> None:
        with self._lock:
            self._hosts = tuple(hosts)

    def add(self, host: HostInfo) -> bool:
        """Add a host unless an equal one is present; return whether it was added."""
        with self._lock:
            if any(host == existing for existing in self._hosts):
                return False
            self._hosts = self._hosts + (host,)
            return True

    def update(self, host: HostInfo) -> None:
        """Replace the hosts equal to ``host`` with it."""
        with self._lock:
            if not self._hosts:
                return
            found = False
            updated = []
            for existing in self._hosts:
                if host == existing:
                    updated.append(host)
                    found = True
                else:
                    updated.append(existing)
            if found:
                self._hosts = tuple(updated)

    def remove(self, address: Union[str, IPAddress, None]) -> bool:
        """Remove the host with the given connect address; return whether one was removed."""
        ip = _to_address(address)
        with self._lock:
            kept = tuple(h for h in self._hosts if h.connect_address != ip)
            if len(kept) == len(self._hosts):
                return False
            self._hosts = kept
            return True


@dataclass
class SelectedHost:
    """A host picked by a policy for one attempt."""

    info: HostInfo | None
    error: BaseException | None = None
    marked: bool = False

    def mark(self, error: BaseException | None) -> None:
        """Record the outcome of the attempt on this selection."""
        self.error = error
        self.marked = True


@dataclass(frozen=True)
class KeyspaceUpdateEvent:
    keyspace: str
    change: str


class HostSelectionPolicy(Protocol):
    """What the query executor needs from a host selection policy."""

    def init(self, session: Any) -> None: ...

    def is_local(self, host: HostInfo) -> bool: ...

    def keyspace_changed(self, event: KeyspaceUpdateEvent) -> None: ...

    def set_partitioner(self, partitioner: str) -> None: ...

    def add_host(self, host: HostInfo) -> None: ...

    def remove_host(self, host: HostInfo) -> None: ...

    def host_up(self, host: HostInfo) -> None: ...

    def host_down(self, host: HostInfo) -> None: ...

    def pick(self, query: Any) -> Iterator[SelectedHost]: ...


class RoundRobinHostPolicy:
    """Try each known host in turn, starting where the previous pick left off."""

    def __init__(self) -> None:
        self._hosts = CowHostList()
        self._position = itertools.count()
        self.session: Any = None
        self.partitioner = ""
        self.last_keyspace_event: KeyspaceUpdateEvent | None = None

    def init(self, session: Any) -> None:
        """Remember the session the policy serves."""
        self.session = session

    def is_local(self, host: HostInfo) -> bool:
        """Every real host counts as local for round-robin selection."""
        return host is not None

    def keyspace_changed(self, event: KeyspaceUpdateEvent) -> None:
        """Record the event; it does not affect round-robin selection."""
        self.last_keyspace_event = event

    def set_partitioner(self, partitioner: str) -> None:
        """Record the partitioner; it does not affect round-robin selection."""
        self.partitioner = partitioner

    def add_host(self, host: HostInfo) -> None:
        self._hosts.add(host)

    def remove_host(self, host: HostInfo) -> None:
        self._hosts.remove(host.connect_address)

    def host_up(self, host: HostInfo) -> None:
        self.add_host(host)

    def host_down(self, host: HostInfo) -> None:
        self.remove_host(host)

    def pick(self, query: Any) -> Iterator[SelectedHost]:
        """Yield at most as many hosts as are known, moving the shared position each time."""
        tried = 0
        while True:
            hosts = self._hosts.get()
            if not hosts:
                return
            # always advance so traffic spreads evenly even on failures
            position = next(self._position)
            if tried >= len(hosts):
                return
            tried += 1
            yield SelectedHost(hosts[position % len(hosts)])


class DCAwareRoundRobinPolicy:
    """Round-robin over hosts of the local data centre, then over all others."""

    def __init__(self, local_dc: str) -> None:
        self.local = local_dc
        self._local_hosts = CowHostList()
        self._remote_hosts = CowHostList()
        self._position = itertools.count()
        self.session: Any = None
        self.partitioner = ""
        self.last_keyspace_event: KeyspaceUpdateEvent | None = None

    def init(self, session: Any) -> None:
        """Remember the session the policy serves."""
        self.session = session

    def is_local(self, host: HostInfo) -> bool:
        return host.data_center == self.local

    def keyspace_changed(self, event: KeyspaceUpdateEvent) -> None:
        """Record the event; it does not affect selection."""
        self.last_keyspace_event = event

    def set_partitioner(self, partitioner: str) -> None:
        """Record the partitioner; it does not affect selection."""
        self.partitioner = partitioner

    def _list_for(self, host: HostInfo) -> CowHostList:
        return self._local_hosts if self.is_local(host) else self._remote_hosts

    def add_host(self, host: HostInfo) -> None:
        self._list_for(host).add(host)

    def remove_host(self, host: HostInfo) -> None:
        self._list_for(host).remove(host.connect_address)

    def host_up(self, host: HostInfo) -> None:
        self.add_host(host)

    def host_down(self, host: HostInfo) -> None:
        self.remove_host(host)

    def pick(self, query: Any) -> Iterator[SelectedHost]:
        """Yield local hosts while any exist, otherwise remote ones."""
        tried = 0
        while True:
            local_hosts = self._local_hosts.get()
            remote_hosts = self._remote_hosts.get()
            hosts = local_hosts or remote_hosts
            if not hosts:
                return
            position = next(self._position)
            if tried >= len(local_hosts) + len(remote_hosts):
                return
            tried += 1
            yield SelectedHost(hosts[position % len(hosts)])