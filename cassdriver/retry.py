"""Policies for retries, reconnection, host conviction and speculative execution."""

from __future__ import annotations

import enum
import logging
import random
import threading
import time
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Protocol, Sequence

logger = logging.getLogger(__name__)

DEFAULT_MIN_BACKOFF = 0.1
DEFAULT_MAX_BACKOFF = 10.0
MAX_RECONNECT_INTERVAL = 32767.0


class RetryableQuery(Protocol):
    """What a retry policy needs from a query or batch."""

    def attempts(self) -> int: ...

    def set_consistency(self, consistency: Any) -> None: ...

    def get_consistency(self) -> Any: ...


class RetryType(enum.IntEnum):
    """What to do after a failed attempt."""

    RETRY = 0x00  # retry on the same connection
    RETRY_NEXT_HOST = 0x01  # retry on another connection
    IGNORE = 0x02  # ignore the error and return the result
    RETHROW = 0x03  # raise the error and stop retrying


class UnknownRetryTypeError(Exception):
    """A retry policy returned a retry type the executor does not know."""

    def __init__(self, message: str = "unknown retry type returned by retry policy") -> None:
        super().__init__(message)


class RequestUnavailableError(Exception):
    """Not enough replicas were alive to serve the request."""

    def __init__(self, consistency: Any = None, required: int = 0, alive: int = 0) -> None:
        super().__init__(
            f"cannot achieve consistency level {consistency}: required {required}, alive {alive}"
        )
        self.consistency = consistency
        self.required = required
        self.alive = alive


class WriteTimeoutError(Exception):
    """Replicas did not acknowledge a write in time."""

    def __init__(
        self,
        consistency: Any = None,
        received: int = 0,
        block_for: int = 0,
        write_type: str = "",
    ) -> None:
        super().__init__(
            f"write timeout ({write_type}): received {received} of {block_for} responses"
        )
        self.consistency = consistency
        self.received = received
        self.block_for = block_for
        self.write_type = write_type


class ReadTimeoutError(Exception):
    """Replicas did not answer a read in time."""

    def __init__(
        self,
        consistency: Any = None,
        received: int = 0,
        block_for: int = 0,
        data_present: bool = False,
    ) -> None:
        super().__init__(f"read timeout: received {received} of {block_for} responses")
        self.consistency = consistency
        self.received = received
        self.block_for = block_for
        self.data_present = data_present


def exponential_time(minimum: float, maximum: float, attempts: int) -> float:
    """Return a jittered, exponentially growing delay in seconds, capped at ``maximum``.

    Non-positive bounds fall back to 0.1 s and 10 s.
    """
    if minimum <= 0:
        minimum = DEFAULT_MIN_BACKOFF
    if maximum <= 0:
        maximum = DEFAULT_MAX_BACKOFF
    nap = minimum * 2.0 ** (attempts - 1)
    nap += random.random() * minimum - minimum / 2
    if nap > maximum:
        return maximum
    return nap


@dataclass
class SimpleRetryPolicy:
    """Allow a query a fixed number of retries."""

    num_retries: int = 0

    def attempt(self, query: RetryableQuery) -> bool:
        return query.attempts() <= self.num_retries

    def get_retry_type(self, error: BaseException | None) -> RetryType:
        return RetryType.RETRY_NEXT_HOST


@dataclass
class ExponentialBackoffRetryPolicy:
    """Retry a fixed number of times, sleeping longer between each attempt."""

    num_retries: int = 0
    minimum: float = 0.0
    maximum: float = 0.0

    def attempt(self, query: RetryableQuery) -> bool:
        if query.attempts() > self.num_retries:
            return False
        time.sleep(self.nap_time(query.attempts()))
        return True

    def get_retry_type(self, error: BaseException | None) -> RetryType:
        return RetryType.RETRY_NEXT_HOST

    def nap_time(self, attempts: int) -> float:
        return exponential_time(self.minimum, self.maximum, attempts)


@dataclass
class DowngradingConsistencyRetryPolicy:
    """Retry with the next consistency level from a list on each attempt."""

    consistency_levels_to_try: Sequence[Any] = field(default_factory=list)

    def attempt(self, query: RetryableQuery) -> bool:
        current = query.attempts()
        if current > len(self.consistency_levels_to_try):
            return False
        if current > 0:
            level = self.consistency_levels_to_try[current - 1]
            query.set_consistency(level)
            logger.debug("%s: set consistency to %s", type(self).__name__, level)
        return True

    def get_retry_type(self, error: BaseException | None) -> RetryType:
        if isinstance(error, RequestUnavailableError):
            return RetryType.RETRY if error.alive > 0 else RetryType.RETHROW
        if isinstance(error, WriteTimeoutError):
            if error.write_type in ("SIMPLE", "BATCH", "COUNTER"):
                return RetryType.IGNORE if error.received > 0 else RetryType.RETHROW
            if error.write_type == "UNLOGGED_BATCH":
                return RetryType.RETRY
            return RetryType.RETHROW
        if isinstance(error, ReadTimeoutError):
            return RetryType.RETRY
        return RetryType.RETRY_NEXT_HOST


def _host_key(host: Any) -> str:
    return str(getattr(host, "connect_address", host))


class SimpleConvictionPolicy:
    """Convict every host on any failure, counting the failures seen per host."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.failures: Counter[str] = Counter()

    def add_failure(self, error: BaseException | None, host: Any) -> bool:
        """Record the failure; every failure convicts the host."""
        with self._lock:
            self.failures[_host_key(host)] += 1
        return True

    def reset(self, host: Any) -> None:
        """Forget the failures recorded for ``host``."""
        with self._lock:
            self.failures.pop(_host_key(host), None)


@dataclass
class ConstantReconnectionPolicy:
    """Reconnect at a fixed interval, in seconds."""

    max_retries: int = 0
    interval: float = 0.0

    def get_interval(self, current_retry: int) -> float:
        return self.interval

    def get_max_retries(self) -> int:
        return self.max_retries


@dataclass
class ExponentialReconnectionPolicy:
    """Reconnect at a growing interval, in seconds."""

    max_retries: int = 0
    initial_interval: float = 0.0

    def get_interval(self, current_retry: int) -> float:
        return exponential_time(
            self.initial_interval, MAX_RECONNECT_INTERVAL, self.get_max_retries()
        )

    def get_max_retries(self) -> int:
        return self.max_retries


class NonSpeculativeExecution:
    """No speculative executions."""

    def attempts(self) -> int:
        return 0

    def delay(self) -> float:
        # must stay positive so it can drive a timer
        return 1e-9


@dataclass
class SimpleSpeculativeExecution:
    """A fixed number of extra executions, started ``timeout_delay`` seconds apart."""

    num_attempts: int = 0
    timeout_delay: float = 0.0

    def attempts(self) -> int:
        return self.num_attempts

    def delay(self) -> float:
        return self.timeout_delay