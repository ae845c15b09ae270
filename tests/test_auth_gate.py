import pytest

from egress_relay.observability.metrics import PerformanceCounter
from egress_relay.services.auth_service import AuthenticationGate, UnauthorizedError


class _CountingOperation:
    def __init__(self, result: str = "done") -> None:
        self.calls = 0
        self.result = result

    async def __call__(self) -> str:
        self.calls += 1
        return self.result


@pytest.mark.parametrize("credential", ["wrong", "", None, "test-secret ", "TEST-SECRET"])
async def test_gate_rejects_mismatched_credential_without_invoking(credential) -> None:
    counter = PerformanceCounter(capacity=8)
    gate = AuthenticationGate("test-secret", counter)
    operation = _CountingOperation()

    with pytest.raises(UnauthorizedError):
        await gate.guard(credential, operation, client="10.0.0.1:5000")

    assert operation.calls == 0
    assert counter.pending() == 0


async def test_gate_runs_operation_and_records_one_sample() -> None:
    counter = PerformanceCounter(capacity=8)
    gate = AuthenticationGate("test-secret", counter)
    operation = _CountingOperation("payload")

    result = await gate.guard("test-secret", operation)

    assert result == "payload"
    assert operation.calls == 1
    samples = counter.buffer.drain()
    assert len(samples) == 1
    assert samples[0] >= 0.0


async def test_gate_with_empty_secret_rejects_everyone() -> None:
    gate = AuthenticationGate("", PerformanceCounter(capacity=8))
    operation = _CountingOperation()

    assert not gate.is_authorized("")
    with pytest.raises(UnauthorizedError):
        await gate.guard("", operation)
    assert operation.calls == 0


async def test_gate_full_buffer_drops_sample_but_returns_result() -> None:
    counter = PerformanceCounter(capacity=1)
    counter.record(0.1)
    gate = AuthenticationGate("test-secret", counter)

    result = await gate.guard("test-secret", _CountingOperation("still here"))

    assert result == "still here"
    assert counter.buffer.drain() == [0.1]


async def test_gate_does_not_record_when_operation_raises() -> None:
    counter = PerformanceCounter(capacity=8)
    gate = AuthenticationGate("test-secret", counter)

    async def boom() -> None:
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        await gate.guard("test-secret", boom)
    assert counter.pending() == 0
