"""
Single topic-partition reader over aiokafka.

The reader is manually assigned to exactly one TopicPartition and never joins
a consumer group. Auto-commit is disabled: the position lives in the reader
only, so a new reader starts again from its resolved offset.
"""

import asyncio
import logging
from typing import List, Optional

from aiokafka import AIOKafkaConsumer, TopicPartition
from aiokafka.structs import ConsumerRecord

from kafka_datasource.common.exceptions import ConnectionError
from kafka_datasource.common.logging import LogSinks, get_logger, log_with_context
from kafka_datasource.common.security import sanitize_error_message
from kafka_datasource.dialer import Dialer
from kafka_datasource.offsets import FIRST_OFFSET, LAST_OFFSET

logger = get_logger(__name__)


class PartitionReader:
    """
    Reads records from one topic-partition starting at a fixed offset.

    Usage:
        >>> reader = PartitionReader(brokers, dialer, sinks, "sensors", 0, LAST_OFFSET)
        >>> await reader.start()
        >>> record = await reader.read_message()
        >>> await reader.close()
    """

    def __init__(
        self,
        brokers: List[str],
        dialer: Dialer,
        sinks: LogSinks,
        topic: str,
        partition: int,
        offset: int,
    ):
        self.brokers = brokers
        self.dialer = dialer
        self.sinks = sinks
        self.topic = topic
        self.partition = partition
        self.offset = offset
        self._tp = TopicPartition(topic, partition)
        self._consumer: Optional[AIOKafkaConsumer] = None
        self._closed = False

    @property
    def started(self) -> bool:
        return self._consumer is not None

    @property
    def closed(self) -> bool:
        return self._closed

    def _create_consumer(self) -> AIOKafkaConsumer:
        return AIOKafkaConsumer(
            bootstrap_servers=self.brokers,
            group_id=None,
            enable_auto_commit=False,
            **self.dialer.client_kwargs(),
        )

    async def start(self) -> None:
        """
        Connect, assign the partition and seek to the start offset.

        Raises:
            ConnectionError: If the consumer could not connect or seek
        """
        consumer = self._create_consumer()
        self.sinks.debug(
            "dialing %s for %s[%d]", ",".join(self.brokers), self.topic, self.partition
        )
        try:
            await asyncio.wait_for(consumer.start(), timeout=self.dialer.timeout_seconds)
            consumer.assign([self._tp])
            if self.offset == LAST_OFFSET:
                await consumer.seek_to_end(self._tp)
            elif self.offset == FIRST_OFFSET:
                await consumer.seek_to_beginning(self._tp)
            else:
                consumer.seek(self._tp, self.offset)
        except Exception as e:
            self.sinks.error(
                "failed to open reader for %s[%d]: %s",
                self.topic,
                self.partition,
                sanitize_error_message(str(e)),
            )
            await consumer.stop()
            raise ConnectionError(
                f"unable to open reader for {self.topic}[{self.partition}]",
                cause=e,
                context={"topic": self.topic, "partition": self.partition},
            ) from e

        self._consumer = consumer
        log_with_context(
            logger,
            logging.DEBUG,
            "Partition reader started",
            topic=self.topic,
            partition=self.partition,
            offset=self.offset,
        )

    async def read_message(self) -> ConsumerRecord:
        """
        Block until the next record of the partition is available.

        Cancellation of the awaiting task propagates unchanged.

        Raises:
            ConnectionError: If the reader is not started or the fetch failed
        """
        if self._consumer is None or self._closed:
            raise ConnectionError(
                f"reader for {self.topic}[{self.partition}] is not open",
                context={"topic": self.topic, "partition": self.partition},
            )
        try:
            record = await self._consumer.getone(self._tp)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.sinks.error(
                "fetch from %s[%d] failed: %s",
                self.topic,
                self.partition,
                sanitize_error_message(str(e)),
            )
            raise ConnectionError(
                "error reading message from Kafka",
                cause=e,
                context={"topic": self.topic, "partition": self.partition},
            ) from e
        self.sinks.debug(
            "read offset %d from %s[%d]", record.offset, self.topic, self.partition
        )
        return record

    async def close(self) -> None:
        """Stop the underlying consumer. Safe to call multiple times."""
        if self._closed:
            return
        self._closed = True
        consumer, self._consumer = self._consumer, None
        if consumer is None:
            return
        await consumer.stop()
        self.sinks.debug("closed reader for %s[%d]", self.topic, self.partition)
        log_with_context(
            logger,
            logging.DEBUG,
            "Partition reader closed",
            topic=self.topic,
            partition=self.partition,
        )
