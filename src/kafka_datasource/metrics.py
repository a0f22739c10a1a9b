"""
Prometheus metrics for the datasource client.

Provides instrumentation for:
- Messages pulled, by outcome
- Reader position per partition
- Health check outcomes and duration
- Topic-partition assignments
"""

from prometheus_client import Counter, Gauge, Histogram

messages_pulled_total = Counter(
    "kafka_datasource_messages_pulled_total",
    "Total number of records pulled from Kafka",
    ["topic", "status"],  # status: success, decode_error, read_error
)

reader_offset = Gauge(
    "kafka_datasource_reader_offset",
    "Offset of the last record pulled per partition",
    ["topic", "partition"],
)

health_checks_total = Counter(
    "kafka_datasource_health_checks_total",
    "Total number of broker health checks",
    ["outcome"],  # outcome: success, timeout, partition_list_failed, init_failed
)

health_check_duration_seconds = Histogram(
    "kafka_datasource_health_check_duration_seconds",
    "Wall time spent in broker health checks",
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)

assignments_total = Counter(
    "kafka_datasource_assignments_total",
    "Total number of topic-partition assignments",
    ["topic", "policy"],
)


def record_pull(topic: str, status: str) -> None:
    messages_pulled_total.labels(topic=topic, status=status).inc()


def update_reader_offset(topic: str, partition: int, offset: int) -> None:
    reader_offset.labels(topic=topic, partition=str(partition)).set(offset)


def record_health_check(outcome: str, duration_seconds: float) -> None:
    health_checks_total.labels(outcome=outcome).inc()
    health_check_duration_seconds.observe(duration_seconds)


def record_assignment(topic: str, policy: str) -> None:
    assignments_total.labels(topic=topic, policy=policy).inc()
