"""
Tests for the broker health check.

The probe schedule is driven by FakeClock: sleeping advances the clock
instantly, so timings are exact and the tests never wait.
"""

import pytest

from fakes import FakeClock, FakeConnection, FakeTransport, RecordingFactory
from kafka_datasource.common.exceptions import (
    ClientInitError,
    HealthCheckTimeoutError,
    PartitionListError,
    UnsupportedMechanismError,
)
from kafka_datasource.config import ClientConfig
from kafka_datasource.health import PROBE_INTERVAL_MS, HealthChecker, HealthState


@pytest.fixture
def fake_clock():
    return FakeClock()


def dial_failures(count):
    return [ConnectionRefusedError(f"dial attempt {i + 1} refused") for i in range(count)]


def make_checker(config, transport, clock):
    return HealthChecker(
        config, RecordingFactory(transport), clock=clock, sleep=clock.sleep
    )


@pytest.mark.asyncio
class TestHealthChecker:
    """Test HealthChecker.check() state machine."""

    async def test_first_probe_succeeds(self, client_config, fake_clock):
        conn = FakeConnection()
        transport = FakeTransport(dial_results=[conn])
        checker = make_checker(client_config, transport, fake_clock)

        await checker.check(1000)

        assert checker.state is HealthState.SUCCESS
        assert checker.attempts == 1
        assert fake_clock.now == pytest.approx(0.2)
        assert conn.read_calls == 1
        assert conn.close_calls == 1

    async def test_dial_failures_then_success_within_deadline(
        self, client_config, fake_clock
    ):
        """3 failed dials then success, timeout 1000 ms > 3 * 200 ms."""
        transport = FakeTransport(dial_results=dial_failures(3) + [FakeConnection()])
        checker = make_checker(client_config, transport, fake_clock)

        await checker.check(1000)

        assert checker.state is HealthState.SUCCESS
        assert transport.dial_calls == 4
        assert fake_clock.now == pytest.approx(0.8)

    async def test_dial_failures_exceed_deadline(self, client_config, fake_clock):
        """3 failed dials then success, timeout 500 ms < 3 * 200 ms."""
        failures = dial_failures(3)
        transport = FakeTransport(dial_results=failures + [FakeConnection()])
        checker = make_checker(client_config, transport, fake_clock)

        with pytest.raises(HealthCheckTimeoutError) as exc_info:
            await checker.check(500)

        assert checker.state is HealthState.TIMED_OUT
        assert transport.dial_calls == 2
        assert exc_info.value.cause is failures[1]
        assert exc_info.value.timeout_ms == 500
        assert "500 ms" in str(exc_info.value)
        assert fake_clock.now == pytest.approx(0.5)

    async def test_timeout_before_first_tick_wraps_nothing(
        self, client_config, fake_clock
    ):
        transport = FakeTransport()
        checker = make_checker(client_config, transport, fake_clock)

        with pytest.raises(HealthCheckTimeoutError) as exc_info:
            await checker.check(PROBE_INTERVAL_MS // 2)

        assert exc_info.value.cause is None
        assert transport.dial_calls == 0
        assert fake_clock.now == pytest.approx(0.1)

    async def test_tick_on_deadline_loses(self, client_config, fake_clock):
        """A tick landing exactly on the deadline does not probe."""
        transport = FakeTransport(dial_results=dial_failures(1))
        checker = make_checker(client_config, transport, fake_clock)

        with pytest.raises(HealthCheckTimeoutError):
            await checker.check(400)

        assert transport.dial_calls == 1

    async def test_partition_list_failure_is_immediate(self, client_config, fake_clock):
        cause = RuntimeError("metadata request failed")
        conn = FakeConnection(error=cause)
        transport = FakeTransport(dial_results=[conn])
        checker = make_checker(client_config, transport, fake_clock)

        with pytest.raises(PartitionListError) as exc_info:
            await checker.check(60_000)

        assert checker.state is HealthState.FAILED
        assert exc_info.value.cause is cause
        assert transport.dial_calls == 1
        assert conn.close_calls == 1
        # Returned on the first tick, long before the deadline
        assert fake_clock.now == pytest.approx(0.2)

    async def test_close_failure_keeps_partition_list_error(
        self, client_config, fake_clock
    ):
        cause = RuntimeError("metadata request failed")
        conn = FakeConnection(error=cause, close_error=OSError("close failed"))
        checker = make_checker(client_config, FakeTransport(dial_results=[conn]), fake_clock)

        with pytest.raises(PartitionListError) as exc_info:
            await checker.check(1000)

        assert exc_info.value.cause is cause
        assert checker.state is HealthState.FAILED
        assert conn.close_calls == 1

    async def test_close_failure_after_success_is_healthy(
        self, client_config, fake_clock
    ):
        conn = FakeConnection(close_error=OSError("close failed"))
        checker = make_checker(client_config, FakeTransport(dial_results=[conn]), fake_clock)

        await checker.check(1000)

        assert checker.state is HealthState.SUCCESS
        assert conn.close_calls == 1

    async def test_partition_list_failure_after_dial_failures(
        self, client_config, fake_clock
    ):
        transport = FakeTransport(
            dial_results=dial_failures(2) + [FakeConnection(error=RuntimeError("boom"))]
        )
        checker = make_checker(client_config, transport, fake_clock)

        with pytest.raises(PartitionListError):
            await checker.check(60_000)

        assert transport.dial_calls == 3
        assert fake_clock.now == pytest.approx(0.6)

    async def test_unsupported_mechanism_fails_fast(self, fake_clock):
        config = ClientConfig(bootstrap_servers="broker:9092", sasl_mechanism="GSSAPI")
        transport = FakeTransport()
        factory = RecordingFactory(transport)
        checker = HealthChecker(config, factory, clock=fake_clock, sleep=fake_clock.sleep)

        with pytest.raises(ClientInitError) as exc_info:
            await checker.check(1000)

        assert isinstance(exc_info.value.cause, UnsupportedMechanismError)
        assert factory.calls == []
        assert fake_clock.sleeps == []

    async def test_default_timeout_from_config(self, fake_clock):
        config = ClientConfig(bootstrap_servers="broker:9092", healthcheck_timeout_ms=300)
        transport = FakeTransport(dial_results=dial_failures(5))
        checker = make_checker(config, transport, fake_clock)

        with pytest.raises(HealthCheckTimeoutError) as exc_info:
            await checker.check()

        assert exc_info.value.timeout_ms == 300
        assert transport.dial_calls == 1

    async def test_builds_transport_from_config(self, client_config, fake_clock):
        factory = RecordingFactory(FakeTransport())
        checker = HealthChecker(
            client_config, factory, clock=fake_clock, sleep=fake_clock.sleep
        )

        await checker.check(1000)

        brokers, dialer, sinks = factory.calls[0]
        assert brokers == ["localhost:9092"]
        assert dialer.security_protocol == "PLAINTEXT"
        assert callable(sinks.debug) and callable(sinks.error)

    async def test_rerun_resets_state(self, client_config, fake_clock):
        transport = FakeTransport(dial_results=dial_failures(1))
        checker = make_checker(client_config, transport, fake_clock)

        await checker.check(1000)
        assert checker.attempts == 2

        await checker.check(1000)
        assert checker.attempts == 1
        assert checker.last_error is None
