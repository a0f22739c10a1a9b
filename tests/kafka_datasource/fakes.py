"""
In-memory fakes for the broker transport and the health check clock.

FakeTransport stands in for AIOKafkaTransport behind the TransportFactory
seam, so client, offset, health and topic tests never touch a broker.
"""

import asyncio
import json
from typing import Dict, List, Optional, Sequence, Tuple, Union

from aiokafka.structs import ConsumerRecord

from kafka_datasource.transport import BrokerConnection, BrokerTransport


def make_record(
    value: Union[bytes, dict, None],
    offset: int = 0,
    topic: str = "sensors",
    partition: int = 0,
    timestamp: int = 1700000000000,
) -> ConsumerRecord:
    """Build a ConsumerRecord; dict values are JSON-encoded."""
    if isinstance(value, dict):
        value = json.dumps(value).encode("utf-8")
    return ConsumerRecord(
        topic=topic,
        partition=partition,
        offset=offset,
        timestamp=timestamp,
        timestamp_type=0,
        key=None,
        value=value,
        checksum=None,
        serialized_key_size=-1,
        serialized_value_size=len(value) if value else 0,
        headers=[],
    )


class FakeConnection(BrokerConnection):
    """Probe connection with a scripted partition listing."""

    def __init__(
        self,
        partitions: Optional[Dict[str, List[int]]] = None,
        error: Optional[Exception] = None,
        close_error: Optional[Exception] = None,
    ):
        self.partitions = partitions if partitions is not None else {"sensors": [0, 1]}
        self.error = error
        self.close_error = close_error
        self.read_calls = 0
        self.close_calls = 0

    async def read_partitions(self) -> Dict[str, List[int]]:
        self.read_calls += 1
        if self.error is not None:
            raise self.error
        return self.partitions

    async def close(self) -> None:
        self.close_calls += 1
        if self.close_error is not None:
            raise self.close_error


class FakeReader:
    """Reader replaying scripted records; blocks forever once drained."""

    def __init__(
        self,
        topic: str,
        partition: int,
        offset: int,
        records: Sequence[Union[ConsumerRecord, Exception]] = (),
        start_error: Optional[Exception] = None,
        close_error: Optional[Exception] = None,
    ):
        self.topic = topic
        self.partition = partition
        self.offset = offset
        self._records = list(records)
        self.start_error = start_error
        self.close_error = close_error
        self.start_calls = 0
        self.close_calls = 0

    async def start(self) -> None:
        self.start_calls += 1
        if self.start_error is not None:
            raise self.start_error

    async def read_message(self) -> ConsumerRecord:
        if not self._records:
            await asyncio.Event().wait()
        item = self._records.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    async def close(self) -> None:
        self.close_calls += 1
        if self.close_error is not None:
            raise self.close_error


class FakeTransport(BrokerTransport):
    """
    Scripted BrokerTransport.

    dial_results are consumed one per dial: an Exception is raised, a
    FakeConnection is returned. Once exhausted every dial succeeds.
    """

    def __init__(
        self,
        dial_results: Sequence[Union[FakeConnection, Exception]] = (),
        watermarks: Tuple[int, int] = (0, 0),
        watermark_error: Optional[Exception] = None,
        topics: Sequence[str] = (),
        metadata_error: Optional[Exception] = None,
        records: Sequence[Union[ConsumerRecord, Exception]] = (),
        reader_start_error: Optional[Exception] = None,
    ):
        self._dial_results = list(dial_results)
        self.watermarks = watermarks
        self.watermark_error = watermark_error
        self.topics = list(topics)
        self.metadata_error = metadata_error
        self.records = list(records)
        self.reader_start_error = reader_start_error

        self.dial_calls = 0
        self.connections: List[FakeConnection] = []
        self.watermark_calls: List[Tuple[str, int]] = []
        self.list_topics_calls = 0
        self.readers: List[FakeReader] = []

    async def dial(self) -> BrokerConnection:
        self.dial_calls += 1
        result = self._dial_results.pop(0) if self._dial_results else FakeConnection()
        if isinstance(result, Exception):
            raise result
        self.connections.append(result)
        return result

    async def read_watermarks(self, topic: str, partition: int) -> Tuple[int, int]:
        self.watermark_calls.append((topic, partition))
        if self.watermark_error is not None:
            raise self.watermark_error
        return self.watermarks

    async def list_topics(self) -> List[str]:
        self.list_topics_calls += 1
        if self.metadata_error is not None:
            raise self.metadata_error
        return self.topics

    def open_reader(self, topic: str, partition: int, offset: int) -> FakeReader:
        reader = FakeReader(
            topic,
            partition,
            offset,
            records=self.records,
            start_error=self.reader_start_error,
        )
        self.readers.append(reader)
        return reader


class RecordingFactory:
    """Transport factory returning one transport and recording its inputs."""

    def __init__(self, transport: BrokerTransport):
        self.transport = transport
        self.calls = []

    def __call__(self, brokers, dialer, sinks):
        self.calls.append((brokers, dialer, sinks))
        return self.transport


class FakeClock:
    """Monotonic clock advanced only by its own sleep()."""

    def __init__(self, now: float = 0.0):
        self.now = now
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
