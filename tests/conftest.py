"""
pytest configuration for kafka_datasource tests.

Adds src directory to Python path and provides the shared client
configuration fixture. Broker and clock fakes live in
tests/kafka_datasource/fakes.py.
"""

import sys
from pathlib import Path

import pytest

# Add src directory to Python path
src_dir = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_dir))

from kafka_datasource.config import ClientConfig  # noqa: E402


@pytest.fixture
def client_config() -> ClientConfig:
    """Plaintext configuration without SASL."""
    return ClientConfig(
        bootstrap_servers="localhost:9092",
        security_protocol="PLAINTEXT",
        healthcheck_timeout_ms=1000,
    )
