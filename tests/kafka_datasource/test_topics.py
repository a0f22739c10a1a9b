"""Tests for the topic existence check."""

import pytest

from fakes import FakeTransport, RecordingFactory
from kafka_datasource.common.exceptions import ClientInitError, MetadataError
from kafka_datasource.config import ClientConfig
from kafka_datasource.topics import TopicExistenceChecker


@pytest.mark.asyncio
class TestTopicExistenceChecker:

    async def test_existing_topic(self, client_config):
        transport = FakeTransport(topics=["t1", "t2"])
        checker = TopicExistenceChecker(client_config, RecordingFactory(transport))

        assert await checker.exists("t2") is True
        assert transport.list_topics_calls == 1

    async def test_missing_topic(self, client_config):
        transport = FakeTransport(topics=["t1", "t2"])
        checker = TopicExistenceChecker(client_config, RecordingFactory(transport))

        assert await checker.exists("t3") is False

    async def test_match_is_exact(self, client_config):
        transport = FakeTransport(topics=["sensors.raw"])
        checker = TopicExistenceChecker(client_config, RecordingFactory(transport))

        assert await checker.exists("sensors") is False
        assert await checker.exists("SENSORS.RAW") is False

    async def test_metadata_failure_raises_without_retry(self, client_config):
        cause = OSError("connection reset by peer")
        transport = FakeTransport(metadata_error=cause)
        checker = TopicExistenceChecker(client_config, RecordingFactory(transport))

        with pytest.raises(MetadataError) as exc_info:
            await checker.exists("t1")

        assert exc_info.value.cause is cause
        assert transport.list_topics_calls == 1

    async def test_bad_mechanism_raises_init_error(self):
        config = ClientConfig(bootstrap_servers="broker:9092", sasl_mechanism="NTLM")
        factory = RecordingFactory(FakeTransport(topics=["t1"]))
        checker = TopicExistenceChecker(config, factory)

        with pytest.raises(ClientInitError):
            await checker.exists("t1")

        assert factory.calls == []
