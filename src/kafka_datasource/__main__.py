"""
Command line probe for the Kafka datasource client.

Configuration is read from KAFKA_* environment variables
(see ClientConfig.from_env).

Usage:
    # Check the brokers are reachable
    python -m kafka_datasource health

    # Check a topic exists
    python -m kafka_datasource topic-exists sensors

    # Print decoded messages of a partition as JSON lines
    python -m kafka_datasource tail sensors --partition 0 --offset earliest --count 10
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from kafka_datasource.client import KafkaClient
from kafka_datasource.common.exceptions import DatasourceError, DecodeError
from kafka_datasource.common.logging import get_logger, log_exception, setup_logging
from kafka_datasource.config import ClientConfig

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="kafka_datasource",
        description="Probe a Kafka cluster with the datasource client",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Emit logs as JSON lines",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    health = subparsers.add_parser("health", help="Run the broker health check")
    health.add_argument(
        "--timeout-ms",
        type=int,
        default=None,
        help="Deadline in ms (default: KAFKA_HEALTHCHECK_TIMEOUT_MS)",
    )

    exists = subparsers.add_parser("topic-exists", help="Check a topic exists")
    exists.add_argument("topic")

    tail = subparsers.add_parser("tail", help="Print decoded messages of a partition")
    tail.add_argument("topic")
    tail.add_argument("--partition", type=int, default=0)
    tail.add_argument(
        "--offset",
        default="latest",
        help="Offset policy: latest (default) or earliest",
    )
    tail.add_argument(
        "--count",
        type=int,
        default=None,
        help="Stop after this many messages (default: run until interrupted)",
    )

    return parser.parse_args(argv)


async def run_health(client: KafkaClient, timeout_ms: Optional[int]) -> int:
    await client.health_check(timeout_ms)
    logger.info("Kafka brokers are healthy")
    return 0


async def run_topic_exists(client: KafkaClient, topic: str) -> int:
    if await client.topic_exists(topic):
        logger.info(f"Topic {topic} exists")
        return 0
    logger.info(f"Topic {topic} does not exist")
    return 1


async def run_tail(
    client: KafkaClient, topic: str, partition: int, offset: str, count: Optional[int]
) -> int:
    await client.topic_assign(topic, partition, offset, timestamp_mode="")
    printed = 0
    try:
        while count is None or printed < count:
            try:
                message = await client.consumer_pull()
            except DecodeError as e:
                log_exception(
                    logger,
                    e,
                    "Skipping undecodable message",
                    level=logging.WARNING,
                    include_traceback=False,
                    topic=topic,
                    partition=partition,
                )
                continue
            print(message.model_dump_json(), flush=True)
            printed += 1
    finally:
        await client.dispose()
    return 0


async def run(args: argparse.Namespace) -> int:
    config = ClientConfig.from_env().validate()
    client = KafkaClient(config)

    if args.command == "health":
        return await run_health(client, args.timeout_ms)
    if args.command == "topic-exists":
        return await run_topic_exists(client, args.topic)
    return await run_tail(client, args.topic, args.partition, args.offset, args.count)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging(level=getattr(logging, args.log_level), json_format=args.json_logs)
    main_logger = get_logger("kafka_datasource")

    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        main_logger.info("Interrupted")
        return 130
    except (DatasourceError, ValueError) as e:
        log_exception(main_logger, e, f"{args.command} failed", include_traceback=False)
        return 1


if __name__ == "__main__":
    sys.exit(main())
