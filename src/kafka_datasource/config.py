"""Client configuration from environment variables or datasource options."""

import os
from dataclasses import dataclass
from typing import Any, List, Mapping

from kafka_datasource.common.exceptions import ConfigurationError
from kafka_datasource.offsets import DEFAULT_OFFSET_STRATEGY, OffsetStrategy

DEFAULT_HEALTHCHECK_TIMEOUT_MS = 2000


@dataclass(frozen=True)
class ClientConfig:
    """Kafka connection configuration for a single client.

    Load from environment using ClientConfig.from_env(), or from the JSON
    datasource options using ClientConfig.from_options().
    All timing values in milliseconds.
    """

    # Connection
    bootstrap_servers: str
    security_protocol: str = "PLAINTEXT"
    sasl_mechanism: str = ""

    # SASL credentials (required iff sasl_mechanism is set)
    sasl_username: str = ""
    sasl_password: str = ""

    # Probes
    healthcheck_timeout_ms: int = DEFAULT_HEALTHCHECK_TIMEOUT_MS

    # Transport log sinks: "debug", "error", anything else is silent
    log_level: str = ""

    # How the "earliest" offset policy is resolved
    earliest_strategy: OffsetStrategy = DEFAULT_OFFSET_STRATEGY

    @property
    def bootstrap_list(self) -> List[str]:
        """Bootstrap endpoints as a list of host:port strings."""
        return [s.strip() for s in self.bootstrap_servers.split(",") if s.strip()]

    def validate(self) -> "ClientConfig":
        """Check the configuration is usable.

        Returns:
            self, to allow chaining

        Raises:
            ConfigurationError: If a field is missing or inconsistent
        """
        if not self.bootstrap_list:
            raise ConfigurationError("bootstrap_servers must list at least one broker")
        if self.healthcheck_timeout_ms <= 0:
            raise ConfigurationError(
                f"healthcheck_timeout_ms must be positive, got {self.healthcheck_timeout_ms}"
            )
        has_credentials = bool(self.sasl_username and self.sasl_password)
        if self.sasl_mechanism and not has_credentials:
            raise ConfigurationError(
                f"SASL mechanism {self.sasl_mechanism} requires username and password"
            )
        if not self.sasl_mechanism and (self.sasl_username or self.sasl_password):
            raise ConfigurationError("SASL credentials given without a SASL mechanism")
        return self

    @classmethod
    def from_env(cls) -> "ClientConfig":
        """Load configuration from environment variables.

        Required environment variables:
            KAFKA_BOOTSTRAP_SERVERS: Kafka broker addresses (comma-separated)

        Optional environment variables (with defaults):
            KAFKA_SECURITY_PROTOCOL: PLAINTEXT (default)
            KAFKA_SASL_MECHANISM: empty, no SASL (default)
            KAFKA_SASL_USERNAME: empty (default)
            KAFKA_SASL_PASSWORD: empty (default)
            KAFKA_HEALTHCHECK_TIMEOUT_MS: 2000 (default)
            KAFKA_LOG_LEVEL: empty, silent (default)
            KAFKA_EARLIEST_STRATEGY: true_earliest (default) or bounded

        Raises:
            ValueError: If required environment variables are missing
        """
        bootstrap_servers = os.getenv("KAFKA_BOOTSTRAP_SERVERS")
        if not bootstrap_servers:
            raise ValueError("KAFKA_BOOTSTRAP_SERVERS environment variable is required")

        return cls(
            bootstrap_servers=bootstrap_servers,
            security_protocol=os.getenv("KAFKA_SECURITY_PROTOCOL", "PLAINTEXT"),
            sasl_mechanism=os.getenv("KAFKA_SASL_MECHANISM", ""),
            sasl_username=os.getenv("KAFKA_SASL_USERNAME", ""),
            sasl_password=os.getenv("KAFKA_SASL_PASSWORD", ""),
            healthcheck_timeout_ms=int(
                os.getenv(
                    "KAFKA_HEALTHCHECK_TIMEOUT_MS", str(DEFAULT_HEALTHCHECK_TIMEOUT_MS)
                )
            ),
            log_level=os.getenv("KAFKA_LOG_LEVEL", ""),
            earliest_strategy=OffsetStrategy.parse(
                os.getenv("KAFKA_EARLIEST_STRATEGY", DEFAULT_OFFSET_STRATEGY.value)
            ),
        )

    @classmethod
    def from_options(cls, options: Mapping[str, Any]) -> "ClientConfig":
        """Build configuration from datasource JSON options.

        Keys follow the datasource settings document:
            bootstrapServers, securityProtocol, saslMechanisms, saslUsername,
            saslPassword, healthcheckTimeout, logLevel, earliestStrategy

        Raises:
            ConfigurationError: If bootstrapServers is missing or a value has
                the wrong type
        """
        bootstrap_servers = options.get("bootstrapServers")
        if not bootstrap_servers:
            raise ConfigurationError("bootstrapServers option is required")

        try:
            timeout = int(options.get("healthcheckTimeout") or DEFAULT_HEALTHCHECK_TIMEOUT_MS)
            strategy = OffsetStrategy.parse(
                options.get("earliestStrategy") or DEFAULT_OFFSET_STRATEGY.value
            )
        except (TypeError, ValueError) as e:
            raise ConfigurationError("invalid datasource options", cause=e) from e

        return cls(
            bootstrap_servers=str(bootstrap_servers),
            security_protocol=options.get("securityProtocol") or "PLAINTEXT",
            sasl_mechanism=options.get("saslMechanisms") or "",
            sasl_username=options.get("saslUsername") or "",
            sasl_password=options.get("saslPassword") or "",
            healthcheck_timeout_ms=timeout,
            log_level=options.get("logLevel") or "",
            earliest_strategy=strategy,
        )
