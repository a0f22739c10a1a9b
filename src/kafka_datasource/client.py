"""
Kafka datasource client.

Provides the consumer-side session used by the datasource:
- Topic-partition assignment at a resolved start offset
- Blocking pull of decoded messages (no offset commit)
- Broker health check with a bounded retry budget
- Topic existence check through cluster metadata
- Idempotent disposal of the bound reader
"""

import asyncio
import logging
from typing import Optional

from kafka_datasource.common.exceptions import (
    ClientInitError,
    CredentialError,
    DecodeError,
    NotAssignedError,
    PullCanceledError,
)
from kafka_datasource.common.logging import LoggedClass, resolve_log_sinks
from kafka_datasource.config import ClientConfig
from kafka_datasource.dialer import Dialer, build_dialer
from kafka_datasource.health import HealthChecker
from kafka_datasource.metrics import record_assignment, record_pull, update_reader_offset
from kafka_datasource.offsets import OffsetPolicy, OffsetResolver
from kafka_datasource.reader import PartitionReader
from kafka_datasource.schemas.message import Message, decode_message, timestamp_from_millis
from kafka_datasource.topics import TopicExistenceChecker
from kafka_datasource.transport import AIOKafkaTransport, BrokerTransport, TransportFactory


class KafkaClient(LoggedClass):
    """
    Single-partition Kafka consumer session.

    Not internally synchronized: assignment, pull, health check and dispose
    must not run concurrently on one instance.

    Usage:
        >>> client = KafkaClient(ClientConfig.from_env())
        >>> await client.health_check()
        >>> await client.topic_assign("sensors", 0, "latest", "now")
        >>> try:
        ...     while True:
        ...         try:
        ...             message = await client.consumer_pull()
        ...         except DecodeError:
        ...             continue
        ...         handle(message)
        ... finally:
        ...     await client.dispose()
    """

    def __init__(
        self,
        config: ClientConfig,
        transport_factory: Optional[TransportFactory] = None,
    ):
        self.config = config
        self.transport_factory: TransportFactory = transport_factory or AIOKafkaTransport
        self.dialer: Optional[Dialer] = None
        self.reader: Optional[PartitionReader] = None
        self.timestamp_mode = ""
        super().__init__()

    # Configuration echo

    @property
    def bootstrap_servers(self) -> str:
        return self.config.bootstrap_servers

    @property
    def security_protocol(self) -> str:
        return self.config.security_protocol

    @property
    def sasl_mechanism(self) -> str:
        return self.config.sasl_mechanism

    @property
    def log_level(self) -> str:
        return self.config.log_level

    @property
    def healthcheck_timeout_ms(self) -> int:
        return self.config.healthcheck_timeout_ms

    @property
    def topic(self) -> Optional[str]:
        return self.reader.topic if self.reader else None

    @property
    def partition(self) -> Optional[int]:
        return self.reader.partition if self.reader else None

    # Session lifecycle

    def _initialize(self) -> BrokerTransport:
        """Build a fresh dialer and the transport around it."""
        try:
            self.dialer = build_dialer(self.config)
        except CredentialError as e:
            raise ClientInitError("unable to initialize Kafka client", cause=e) from e
        sinks = resolve_log_sinks(self.config.log_level)
        return self.transport_factory(self.config.bootstrap_list, self.dialer, sinks)

    async def _replace_reader(self, reader: Optional[PartitionReader]) -> None:
        """
        Close the bound reader, then bind the new one.

        The new reader is bound even when closing the previous one fails;
        the close failure is logged, not raised.
        """
        previous = self.reader
        try:
            if previous is not None:
                await previous.close()
        except Exception as e:
            self._log_exception(
                e,
                "Failed to close previous partition reader",
                level=logging.WARNING,
                previous_topic=previous.topic,
                previous_partition=previous.partition,
            )
        finally:
            self.reader = reader

    async def topic_assign(
        self,
        topic: str,
        partition: int,
        auto_offset_reset: str,
        timestamp_mode: str,
    ) -> None:
        """
        Bind the session to a topic-partition.

        Resolves the start offset once, opens a reader at that offset and
        replaces any previously bound reader. If any step fails the previous
        reader stays bound.

        Args:
            topic: Topic name
            partition: Partition index (>= 0)
            auto_offset_reset: "latest", "earliest"; anything else means latest
            timestamp_mode: Opaque tag kept for the caller's decode step

        Raises:
            ValueError: If partition is negative
            ClientInitError: If credentials could not be built
            OffsetResolutionError: If earliest watermarks could not be read
            ConnectionError: If the reader could not connect
        """
        if partition < 0:
            raise ValueError(f"partition must be non-negative, got {partition}")

        self.timestamp_mode = timestamp_mode
        transport = self._initialize()

        policy = OffsetPolicy.parse(auto_offset_reset)
        resolver = OffsetResolver(transport, self.config.earliest_strategy)
        offset = await resolver.resolve(policy, topic, partition)

        reader = transport.open_reader(topic, partition, offset)
        await reader.start()
        await self._replace_reader(reader)

        record_assignment(topic, policy.value)
        self._log(
            logging.INFO,
            "Assigned topic-partition",
            offset=offset,
            policy=policy.value,
            strategy=self.config.earliest_strategy.value,
            timestamp_mode=timestamp_mode,
        )

    async def consumer_pull(self, timeout_ms: Optional[int] = None) -> Message:
        """
        Block until the next message of the bound partition is decoded.

        Args:
            timeout_ms: Optional deadline; None waits until cancelled

        Returns:
            Decoded Message

        Raises:
            NotAssignedError: If no topic-partition is bound
            PullCanceledError: If timeout_ms elapsed first
            ConnectionError: If reading from the broker failed
            DecodeError: If the record body is not a flat numeric object;
                the record is dropped and the session stays usable
            asyncio.CancelledError: If the awaiting task is cancelled
        """
        reader = self.reader
        if reader is None:
            raise NotAssignedError("no topic-partition assigned")

        try:
            if timeout_ms is None:
                record = await reader.read_message()
            else:
                record = await asyncio.wait_for(reader.read_message(), timeout_ms / 1000)
        except asyncio.TimeoutError as e:
            raise PullCanceledError(
                f"no message within {timeout_ms} ms",
                cause=e,
                context={"topic": reader.topic, "partition": reader.partition},
            ) from e
        except Exception:
            record_pull(reader.topic, "read_error")
            raise

        update_reader_offset(reader.topic, reader.partition, record.offset)
        try:
            value = decode_message(record.value)
        except DecodeError as e:
            e.context.update(topic=reader.topic, partition=reader.partition, offset=record.offset)
            record_pull(reader.topic, "decode_error")
            raise

        record_pull(reader.topic, "success")
        return Message(
            value=value,
            offset=record.offset,
            timestamp=timestamp_from_millis(record.timestamp),
            topic=record.topic,
            partition=record.partition,
        )

    async def health_check(self, timeout_ms: Optional[int] = None) -> None:
        """
        Probe the brokers until a dial and partition listing succeed.

        Args:
            timeout_ms: Deadline (default: config.healthcheck_timeout_ms)

        Raises:
            ClientInitError: If credentials could not be built
            PartitionListError: If listing partitions failed after a dial
            HealthCheckTimeoutError: If the deadline elapsed first
        """
        checker = HealthChecker(self.config, self.transport_factory)
        await checker.check(timeout_ms)

    async def topic_exists(self, topic: str) -> bool:
        """
        Check whether a topic exists in cluster metadata.

        Raises:
            ClientInitError: If credentials could not be built
            MetadataError: If the metadata request failed
        """
        checker = TopicExistenceChecker(self.config, self.transport_factory)
        return await checker.exists(topic)

    async def dispose(self) -> None:
        """Close the bound reader. No-op when nothing is bound."""
        if self.reader is None:
            return
        self._log(logging.INFO, "Disposing partition reader")
        await self._replace_reader(None)
