"""
Broker transport capability.

BrokerTransport is the seam between the client logic and the Kafka wire
protocol. The client, offset resolver, health checker and topic checker only
talk to this interface; AIOKafkaTransport implements it with aiokafka.

Operations:
    dial()             connect to the bootstrap endpoints (BrokerConnection)
    read_watermarks()  low/high watermark of one partition
    list_topics()      topic names from cluster metadata
    open_reader()      unstarted PartitionReader bound to one partition
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Tuple

from aiokafka import AIOKafkaConsumer, TopicPartition
from aiokafka.admin import AIOKafkaAdminClient

from kafka_datasource.common.logging import LogSinks, get_logger
from kafka_datasource.common.security import sanitize_error_message
from kafka_datasource.dialer import Dialer
from kafka_datasource.reader import PartitionReader

logger = get_logger(__name__)

CLIENT_ID = "kafka-datasource"


class BrokerConnection(ABC):
    """An open connection to the cluster used by probes."""

    @abstractmethod
    async def read_partitions(self) -> Dict[str, List[int]]:
        """Partition ids of every topic visible to the connection."""

    @abstractmethod
    async def close(self) -> None:
        """Release the connection."""


class BrokerTransport(ABC):
    """Opaque broker capability built from a Dialer and log sinks."""

    @abstractmethod
    async def dial(self) -> BrokerConnection:
        """Connect to the bootstrap endpoints."""

    @abstractmethod
    async def read_watermarks(self, topic: str, partition: int) -> Tuple[int, int]:
        """Return (low, high) watermarks of a partition."""

    @abstractmethod
    async def list_topics(self) -> List[str]:
        """Return topic names from cluster metadata."""

    @abstractmethod
    def open_reader(self, topic: str, partition: int, offset: int) -> PartitionReader:
        """Create an unstarted reader for a topic-partition at offset."""


TransportFactory = Callable[[List[str], Dialer, LogSinks], BrokerTransport]


class AdminConnection(BrokerConnection):
    """BrokerConnection backed by a started AIOKafkaAdminClient."""

    def __init__(self, admin: AIOKafkaAdminClient, sinks: LogSinks):
        self._admin = admin
        self._sinks = sinks
        self._closed = False

    async def read_partitions(self) -> Dict[str, List[int]]:
        described = await self._admin.describe_topics()
        partitions: Dict[str, List[int]] = {}
        for topic in described:
            if topic.get("error_code", 0):
                raise RuntimeError(
                    f"describe topic {topic.get('topic')} failed "
                    f"with error code {topic['error_code']}"
                )
            partitions[topic["topic"]] = sorted(
                p["partition"] for p in topic.get("partitions", [])
            )
        self._sinks.debug("read %d topics from metadata", len(partitions))
        return partitions

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._admin.close()


class AIOKafkaTransport(BrokerTransport):
    """
    BrokerTransport implemented with aiokafka.

    Every operation builds its own short-lived client from the Dialer, so the
    transport itself keeps no connection state.
    """

    def __init__(self, brokers: List[str], dialer: Dialer, sinks: LogSinks):
        self.brokers = brokers
        self.dialer = dialer
        self.sinks = sinks

    def _admin_client(self) -> AIOKafkaAdminClient:
        return AIOKafkaAdminClient(
            bootstrap_servers=self.brokers,
            client_id=CLIENT_ID,
            **self.dialer.client_kwargs(),
        )

    async def _start_admin(self) -> AIOKafkaAdminClient:
        admin = self._admin_client()
        self.sinks.debug("dialing %s", ",".join(self.brokers))
        try:
            await asyncio.wait_for(admin.start(), timeout=self.dialer.timeout_seconds)
        except Exception as e:
            self.sinks.error(
                "dial %s failed: %s",
                ",".join(self.brokers),
                sanitize_error_message(str(e)),
            )
            await admin.close()
            raise
        return admin

    async def dial(self) -> BrokerConnection:
        admin = await self._start_admin()
        return AdminConnection(admin, self.sinks)

    async def read_watermarks(self, topic: str, partition: int) -> Tuple[int, int]:
        tp = TopicPartition(topic, partition)
        consumer = AIOKafkaConsumer(
            bootstrap_servers=self.brokers,
            group_id=None,
            enable_auto_commit=False,
            client_id=CLIENT_ID,
            **self.dialer.client_kwargs(),
        )
        self.sinks.debug("reading watermarks of %s[%d]", topic, partition)
        try:
            await asyncio.wait_for(consumer.start(), timeout=self.dialer.timeout_seconds)
            low = (await consumer.beginning_offsets([tp]))[tp]
            high = (await consumer.end_offsets([tp]))[tp]
        except Exception as e:
            self.sinks.error(
                "reading watermarks of %s[%d] failed: %s",
                topic,
                partition,
                sanitize_error_message(str(e)),
            )
            raise
        finally:
            await consumer.stop()
        self.sinks.debug("watermarks of %s[%d]: low=%d high=%d", topic, partition, low, high)
        return low, high

    async def list_topics(self) -> List[str]:
        admin = await self._start_admin()
        try:
            topics = await admin.list_topics()
        except Exception as e:
            self.sinks.error("metadata request failed: %s", sanitize_error_message(str(e)))
            raise
        finally:
            await admin.close()
        return list(topics)

    def open_reader(self, topic: str, partition: int, offset: int) -> PartitionReader:
        return PartitionReader(self.brokers, self.dialer, self.sinks, topic, partition, offset)
