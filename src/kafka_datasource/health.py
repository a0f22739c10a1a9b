"""
Broker health check.

The check is a small state machine:

    INIT -> PROBING -> SUCCESS
                    -> TIMED_OUT  (deadline reached, wraps last dial error)
                    -> FAILED     (dialed, but listing partitions failed)

While PROBING, a probe fires every `interval_ms`, the first one a full
interval after the check starts. A failed dial is remembered and retried on
the next tick. A failed partition listing after a successful dial ends the
check immediately. When the next tick would fire at or after the deadline the
deadline wins.

Clock and sleep are injectable so the schedule can be driven by a fake clock.
"""

import asyncio
import logging
import time
from enum import Enum
from typing import Awaitable, Callable, Optional

from kafka_datasource.common.exceptions import (
    ClientInitError,
    CredentialError,
    HealthCheckTimeoutError,
    PartitionListError,
    classify_exception,
)
from kafka_datasource.common.logging import (
    get_logger,
    log_exception,
    log_with_context,
    resolve_log_sinks,
)
from kafka_datasource.common.security import sanitize_error_message
from kafka_datasource.config import ClientConfig
from kafka_datasource.dialer import build_dialer
from kafka_datasource.metrics import record_health_check
from kafka_datasource.transport import BrokerConnection, BrokerTransport, TransportFactory

logger = get_logger(__name__)

PROBE_INTERVAL_MS = 200


class HealthState(Enum):
    """States of a single health check run."""

    INIT = "init"
    PROBING = "probing"
    SUCCESS = "success"
    TIMED_OUT = "timed_out"
    FAILED = "failed"


class HealthChecker:
    """
    Retries a dial + list-partitions probe until success or deadline.

    Usage:
        >>> checker = HealthChecker(config, AIOKafkaTransport)
        >>> await checker.check(timeout_ms=2000)
    """

    def __init__(
        self,
        config: ClientConfig,
        transport_factory: TransportFactory,
        interval_ms: int = PROBE_INTERVAL_MS,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.config = config
        self.transport_factory = transport_factory
        self.interval_ms = interval_ms
        self._clock = clock
        self._sleep = sleep
        self.state = HealthState.INIT
        self.attempts = 0
        self.last_error: Optional[BaseException] = None

    def _build_transport(self) -> BrokerTransport:
        try:
            dialer = build_dialer(self.config)
        except CredentialError as e:
            raise ClientInitError("unable to initialize Kafka client", cause=e) from e
        sinks = resolve_log_sinks(self.config.log_level)
        return self.transport_factory(self.config.bootstrap_list, dialer, sinks)

    async def _probe(self, transport: BrokerTransport) -> bool:
        """One tick. True on success, False on a dial failure."""
        self.attempts += 1
        try:
            conn = await transport.dial()
        except Exception as e:
            self.last_error = e
            log_with_context(
                logger,
                logging.DEBUG,
                "Health check dial failed, retrying",
                attempts=self.attempts,
                error_category=classify_exception(e).value,
                error_message=sanitize_error_message(str(e)),
            )
            return False

        try:
            await conn.read_partitions()
        except Exception as e:
            self.state = HealthState.FAILED
            raise PartitionListError("error reading partitions", cause=e) from e
        finally:
            await self._close_connection(conn)
        return True

    async def _close_connection(self, conn: BrokerConnection) -> None:
        """Release a probe connection; a close failure never changes the outcome."""
        try:
            await conn.close()
        except Exception as e:
            log_exception(
                logger,
                e,
                "Failed to close health check connection",
                level=logging.WARNING,
                include_traceback=False,
                attempts=self.attempts,
            )

    async def check(self, timeout_ms: Optional[int] = None) -> None:
        """
        Run the health check.

        Args:
            timeout_ms: Deadline in milliseconds
                (default: config.healthcheck_timeout_ms)

        Raises:
            ClientInitError: If credentials could not be built
            PartitionListError: If a dial succeeded but listing partitions failed
            HealthCheckTimeoutError: If no probe succeeded before the deadline
        """
        if timeout_ms is None:
            timeout_ms = self.config.healthcheck_timeout_ms

        self.state = HealthState.INIT
        self.attempts = 0
        self.last_error = None
        started = self._clock()

        try:
            transport = self._build_transport()
        except ClientInitError as e:
            self.state = HealthState.FAILED
            record_health_check("init_failed", self._clock() - started)
            log_exception(
                logger, e, "Health check could not initialize", include_traceback=False
            )
            raise

        interval = self.interval_ms / 1000
        deadline = started + timeout_ms / 1000
        next_tick = started + interval
        self.state = HealthState.PROBING

        try:
            while True:
                now = self._clock()
                if next_tick >= deadline:
                    if deadline > now:
                        await self._sleep(deadline - now)
                    self.state = HealthState.TIMED_OUT
                    raise HealthCheckTimeoutError(
                        timeout_ms, cause=self.last_error
                    ) from self.last_error

                if next_tick > now:
                    await self._sleep(next_tick - now)

                # A probe still in flight at the deadline loses the race
                try:
                    succeeded = await asyncio.wait_for(
                        self._probe(transport), timeout=deadline - next_tick
                    )
                except asyncio.TimeoutError:
                    self.state = HealthState.TIMED_OUT
                    raise HealthCheckTimeoutError(
                        timeout_ms, cause=self.last_error
                    ) from self.last_error

                if succeeded:
                    self.state = HealthState.SUCCESS
                    break

                # Drop ticks missed while the probe was in flight
                now = self._clock()
                next_tick += interval
                while next_tick <= now:
                    next_tick += interval
        except (HealthCheckTimeoutError, PartitionListError) as e:
            if self.state is HealthState.TIMED_OUT:
                outcome = "timeout"
            else:
                outcome = "partition_list_failed"
            record_health_check(outcome, self._clock() - started)
            log_exception(
                logger,
                e,
                "Health check failed",
                include_traceback=False,
                attempts=self.attempts,
                timeout_ms=timeout_ms,
            )
            raise

        record_health_check("success", self._clock() - started)
        log_with_context(
            logger,
            logging.DEBUG,
            "Health check succeeded",
            attempts=self.attempts,
            duration_ms=int((self._clock() - started) * 1000),
        )
