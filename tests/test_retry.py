from unittest import mock

import pytest

from cassdriver.retry import (
    ConstantReconnectionPolicy,
    DowngradingConsistencyRetryPolicy,
    ExponentialBackoffRetryPolicy,
    ExponentialReconnectionPolicy,
    NonSpeculativeExecution,
    ReadTimeoutError,
    RequestUnavailableError,
    RetryType,
    SimpleConvictionPolicy,
    SimpleRetryPolicy,
    SimpleSpeculativeExecution,
    UnknownRetryTypeError,
    WriteTimeoutError,
    exponential_time,
)

EPS = 1e-9


class FakeQuery:
    def __init__(self, attempts=0, consistency="LOCAL_QUORUM"):
        self.count = attempts
        self.consistency = consistency

    def attempts(self):
        return self.count

    def set_consistency(self, consistency):
        self.consistency = consistency

    def get_consistency(self):
        return self.consistency


@pytest.mark.parametrize(
    "attempts, allow",
    [(0, True), (1, True), (2, True), (3, False), (4, False), (5, False)],
)
def test_simple_retry_policy(attempts, allow):
    policy = SimpleRetryPolicy(num_retries=2)
    assert policy.attempt(FakeQuery(attempts)) is allow


def test_simple_retry_policy_retry_type():
    assert SimpleRetryPolicy(3).get_retry_type(ValueError()) is RetryType.RETRY_NEXT_HOST


@pytest.mark.parametrize("attempts, delay", [(1, 0.1), (2, 0.2), (3, 0.4), (4, 0.8)])
def test_exponential_backoff_nap_time_within_jitter(attempts, delay):
    policy = ExponentialBackoffRetryPolicy(num_retries=2)
    for _ in range(100):
        nap = policy.nap_time(attempts)
        assert delay - 0.05 - EPS <= nap <= delay + 0.05 + EPS


def test_exponential_time_caps_at_maximum():
    assert exponential_time(0.1, 0.5, 10) == 0.5


def test_exponential_time_default_maximum():
    assert exponential_time(0, 0, 20) == 10.0


def test_exponential_backoff_attempt_sleeps_until_limit():
    policy = ExponentialBackoffRetryPolicy(num_retries=2, minimum=0.1, maximum=1.0)
    with mock.patch("cassdriver.retry.time.sleep") as sleep:
        assert policy.attempt(FakeQuery(1)) is True
        assert sleep.call_count == 1
        assert 0.05 - EPS <= sleep.call_args[0][0] <= 0.15 + EPS
        assert policy.attempt(FakeQuery(3)) is False
        assert sleep.call_count == 1
    assert policy.get_retry_type(None) is RetryType.RETRY_NEXT_HOST


@pytest.mark.parametrize(
    "attempts, allow, error, retry_type, consistency",
    [
        (0, True, WriteTimeoutError(received=0, write_type="SIMPLE"), RetryType.RETHROW, "LOCAL_QUORUM"),
        (3, True, WriteTimeoutError(received=1, write_type="BATCH"), RetryType.IGNORE, "ONE"),
        (1, True, WriteTimeoutError(write_type="UNLOGGED_BATCH"), RetryType.RETRY, "THREE"),
        (2, True, ReadTimeoutError(), RetryType.RETRY, "TWO"),
        (4, False, RequestUnavailableError(alive=0), RetryType.RETHROW, "LOCAL_QUORUM"),
        (16, False, RequestUnavailableError(alive=1), RetryType.RETRY, "LOCAL_QUORUM"),
    ],
)
def test_downgrading_consistency_retry_policy(attempts, allow, error, retry_type, consistency):
    policy = DowngradingConsistencyRetryPolicy(["THREE", "TWO", "ONE"])
    query = FakeQuery(attempts)
    assert policy.get_retry_type(error) is retry_type
    assert policy.attempt(query) is allow
    assert query.get_consistency() == consistency


def test_downgrading_other_errors():
    policy = DowngradingConsistencyRetryPolicy(["ONE"])
    assert policy.get_retry_type(WriteTimeoutError(received=5, write_type="CAS")) is RetryType.RETHROW
    assert policy.get_retry_type(RuntimeError("boom")) is RetryType.RETRY_NEXT_HOST


def test_unknown_retry_type_error_message():
    assert str(UnknownRetryTypeError()) == "unknown retry type returned by retry policy"


def test_simple_conviction_policy_always_convicts():
    policy = SimpleConvictionPolicy()
    assert policy.add_failure(RuntimeError("x"), None) is True
    assert policy.reset(None) is None


def test_constant_reconnection_policy():
    policy = ConstantReconnectionPolicy(max_retries=10, interval=8.0)
    assert policy.get_interval(3) == 8.0
    assert policy.get_max_retries() == 10


def test_exponential_reconnection_policy():
    policy = ExponentialReconnectionPolicy(max_retries=3, initial_interval=1.0)
    assert policy.get_max_retries() == 3
    for retry in range(5):
        interval = policy.get_interval(retry)
        assert 3.5 - EPS <= interval <= 4.5 + EPS


def test_speculative_execution_policies():
    non = NonSpeculativeExecution()
    assert non.attempts() == 0
    assert non.delay() > 0
    simple = SimpleSpeculativeExecution(num_attempts=2, timeout_delay=0.5)
    assert simple.attempts() == 2
    assert simple.delay() == 0.5


def test_retry_type_values():
    assert [int(t) for t in RetryType] == [0, 1, 2, 3]
    assert RetryType(3) is RetryType.RETHROW