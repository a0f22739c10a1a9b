"""Topic existence check against cluster metadata."""

import logging

from kafka_datasource.common.exceptions import (
    ClientInitError,
    CredentialError,
    MetadataError,
)
from kafka_datasource.common.logging import get_logger, log_with_context, resolve_log_sinks
from kafka_datasource.config import ClientConfig
from kafka_datasource.dialer import build_dialer
from kafka_datasource.transport import TransportFactory

logger = get_logger(__name__)


class TopicExistenceChecker:
    """One-shot metadata lookup for a topic name. No retries."""

    def __init__(self, config: ClientConfig, transport_factory: TransportFactory):
        self.config = config
        self.transport_factory = transport_factory

    async def exists(self, topic: str) -> bool:
        """
        Check whether a topic is present in cluster metadata.

        Args:
            topic: Exact topic name

        Returns:
            True if the topic is listed

        Raises:
            ClientInitError: If credentials could not be built
            MetadataError: If the metadata request failed
        """
        try:
            dialer = build_dialer(self.config)
        except CredentialError as e:
            raise ClientInitError("unable to initialize Kafka client", cause=e) from e

        transport = self.transport_factory(
            self.config.bootstrap_list, dialer, resolve_log_sinks(self.config.log_level)
        )
        try:
            topics = await transport.list_topics()
        except Exception as e:
            raise MetadataError(
                "unable to fetch cluster metadata", cause=e, context={"topic": topic}
            ) from e

        found = any(name == topic for name in topics)
        log_with_context(
            logger,
            logging.DEBUG,
            "Topic lookup finished" if found else "Topic not found in metadata",
            topic=topic,
        )
        return found
