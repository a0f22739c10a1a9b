"""
Consumer-side Kafka client for a streaming datasource.

Binds a session to one topic-partition at a resolved start offset and pulls
flat numeric JSON records one at a time. Offsets are never committed.

Modules:
    config.py     - ClientConfig with environment / options loading
    dialer.py     - SASL + TLS dial capability builder
    offsets.py    - Offset policy resolution (latest / earliest strategies)
    transport.py  - BrokerTransport seam and the aiokafka implementation
    reader.py     - Single topic-partition reader
    health.py     - Health check state machine
    topics.py     - Topic existence check
    client.py     - KafkaClient session facade
"""

from kafka_datasource.client import KafkaClient
from kafka_datasource.config import ClientConfig
from kafka_datasource.offsets import FIRST_OFFSET, LAST_OFFSET, OffsetPolicy, OffsetStrategy
from kafka_datasource.schemas.message import Message

__all__ = [
    "ClientConfig",
    "FIRST_OFFSET",
    "KafkaClient",
    "LAST_OFFSET",
    "Message",
    "OffsetPolicy",
    "OffsetStrategy",
]
