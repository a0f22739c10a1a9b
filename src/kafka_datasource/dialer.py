"""
Credential and dial capability builder.

Turns the security settings of a ClientConfig into a Dialer: the SASL
credentials, the optional TLS context and the connection timeout that every
aiokafka client built by the transport shares.

A Dialer is immutable. build_dialer() holds no state and is called again
whenever a fresh dial capability is needed (assignment, health check).
"""

import ssl
from dataclasses import dataclass
from typing import Any, Dict, Optional

from aiokafka.helpers import create_ssl_context

from kafka_datasource.common.exceptions import UnsupportedMechanismError
from kafka_datasource.config import ClientConfig

# Connection establishment timeout, independent of the health check timeout
DIAL_TIMEOUT_MS = 10000

SASL_SSL = "SASL_SSL"

SUPPORTED_MECHANISMS = ("PLAIN", "SCRAM-SHA-256", "SCRAM-SHA-512")


@dataclass(frozen=True)
class SaslCredentials:
    """SASL mechanism name with its username/password."""

    mechanism: str
    username: str
    password: str

    def __repr__(self) -> str:
        return (
            f"SaslCredentials(mechanism={self.mechanism!r}, "
            f"username={self.username!r}, password='***')"
        )


@dataclass(frozen=True)
class Dialer:
    """Immutable dial capability shared by the transport's clients."""

    sasl: Optional[SaslCredentials] = None
    ssl_context: Optional[ssl.SSLContext] = None
    timeout_ms: int = DIAL_TIMEOUT_MS

    @property
    def tls(self) -> bool:
        return self.ssl_context is not None

    @property
    def security_protocol(self) -> str:
        """aiokafka security_protocol for this combination of SASL and TLS."""
        if self.sasl is not None:
            return "SASL_SSL" if self.tls else "SASL_PLAINTEXT"
        return "SSL" if self.tls else "PLAINTEXT"

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000

    def client_kwargs(self) -> Dict[str, Any]:
        """Connection keyword arguments for aiokafka consumer/admin clients."""
        kwargs: Dict[str, Any] = {
            "security_protocol": self.security_protocol,
            "request_timeout_ms": self.timeout_ms,
        }
        if self.ssl_context is not None:
            kwargs["ssl_context"] = self.ssl_context
        if self.sasl is not None:
            kwargs["sasl_mechanism"] = self.sasl.mechanism
            kwargs["sasl_plain_username"] = self.sasl.username
            kwargs["sasl_plain_password"] = self.sasl.password
        return kwargs


def get_sasl_mechanism(
    mechanism: str, username: str, password: str
) -> Optional[SaslCredentials]:
    """
    Build SASL credentials for a mechanism name.

    Args:
        mechanism: "", "PLAIN", "SCRAM-SHA-256" or "SCRAM-SHA-512"
        username: SASL username
        password: SASL password

    Returns:
        SaslCredentials, or None when mechanism is empty

    Raises:
        UnsupportedMechanismError: For any other mechanism name
    """
    if mechanism == "":
        return None
    if mechanism not in SUPPORTED_MECHANISMS:
        raise UnsupportedMechanismError(mechanism)
    return SaslCredentials(mechanism=mechanism, username=username, password=password)


def build_ssl_context() -> ssl.SSLContext:
    """TLS context trusting the default CA bundle, TLS 1.2 or newer."""
    context = create_ssl_context()
    context.minimum_version = ssl.TLSVersion.TLSv1_2
    return context


def build_dialer(config: ClientConfig) -> Dialer:
    """
    Build the dial capability for a configuration.

    TLS is enabled only for security protocol SASL_SSL. No client
    certificate or custom trust store is configured.

    Raises:
        UnsupportedMechanismError: If the SASL mechanism is not supported
    """
    sasl = get_sasl_mechanism(
        config.sasl_mechanism, config.sasl_username, config.sasl_password
    )
    ssl_context = build_ssl_context() if config.security_protocol == SASL_SSL else None
    return Dialer(sasl=sasl, ssl_context=ssl_context)
