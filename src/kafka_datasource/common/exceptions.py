"""
Exception types and error classification for kafka_datasource.

Provides:
- ErrorCategory enum for retry decisions
- Typed exception hierarchy for client errors
- Error classification utilities
"""

from enum import Enum
from typing import Optional


class ErrorCategory(Enum):
    """
    Classification of error types for handling decisions.

    Categories:
        TRANSIENT: Temporary failures that may succeed later
                   (e.g., broker unreachable, request timeouts)
        AUTH: Authentication failures (e.g., SASL handshake rejected)
        PERMANENT: Failures that won't succeed on retry
                   (e.g., unsupported mechanism, malformed payload)
        UNKNOWN: Unclassified errors
    """

    TRANSIENT = "transient"
    AUTH = "auth"
    PERMANENT = "permanent"
    UNKNOWN = "unknown"


class DatasourceError(Exception):
    """
    Base exception for all client errors.

    Attributes:
        message: Human-readable error description
        category: Error classification for retry decisions
        cause: Original exception if wrapping
        context: Additional context dict for debugging
    """

    category: ErrorCategory = ErrorCategory.UNKNOWN

    def __init__(
        self,
        message: str,
        cause: Optional[BaseException] = None,
        context: Optional[dict] = None,
    ):
        self.message = message
        self.cause = cause
        self.context = context or {}
        super().__init__(message)

    @property
    def is_retryable(self) -> bool:
        """Whether this error may succeed on a later attempt."""
        return self.category in (ErrorCategory.TRANSIENT, ErrorCategory.UNKNOWN)

    def __str__(self) -> str:
        parts = [self.message]
        if self.cause:
            parts.append(f"Caused by: {self.cause}")
        return " | ".join(parts)


# =============================================================================
# Permanent Errors
# =============================================================================


class PermanentError(DatasourceError):
    """Base class for non-retriable errors."""

    category = ErrorCategory.PERMANENT


class ConfigurationError(PermanentError):
    """Invalid client configuration."""

    pass


class CredentialError(PermanentError):
    """SASL credentials could not be built."""

    pass


class UnsupportedMechanismError(CredentialError):
    """SASL mechanism name is not one of PLAIN, SCRAM-SHA-256, SCRAM-SHA-512."""

    def __init__(self, mechanism: str):
        super().__init__(
            f"unsupported mechanism SASL: {mechanism}",
            context={"sasl_mechanism": mechanism},
        )
        self.mechanism = mechanism


class ClientInitError(PermanentError):
    """Dial capability could not be initialized."""

    pass


class DecodeError(PermanentError):
    """Message body is not a flat JSON object of numbers."""

    pass


class NotAssignedError(PermanentError):
    """No topic-partition has been assigned to the client."""

    pass


# =============================================================================
# Transient Errors
# =============================================================================


class TransientError(DatasourceError):
    """Base class for errors caused by broker or network state."""

    category = ErrorCategory.TRANSIENT


class ConnectionError(TransientError):
    """Dial or read against the broker failed."""

    pass


class OffsetResolutionError(TransientError):
    """Partition watermarks could not be read."""

    pass


class PartitionListError(TransientError):
    """Connected to the broker but listing partitions failed."""

    pass


class MetadataError(TransientError):
    """Cluster metadata could not be fetched."""

    pass


class HealthCheckTimeoutError(TransientError):
    """No successful probe before the health check deadline."""

    def __init__(
        self,
        timeout_ms: int,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(
            f"health check timed out after {timeout_ms} ms",
            cause=cause,
            context={"timeout_ms": timeout_ms},
        )
        self.timeout_ms = timeout_ms


class PullCanceledError(TransientError):
    """Pull deadline elapsed before a message arrived."""

    pass


# =============================================================================
# Error Classification Utilities
# =============================================================================


def classify_exception(exc: BaseException) -> ErrorCategory:
    """
    Classify an exception into error category.

    Args:
        exc: Exception to classify

    Returns:
        Appropriate ErrorCategory
    """
    # Already classified
    if isinstance(exc, DatasourceError):
        return exc.category

    exc_type = type(exc).__name__.lower()
    exc_str = str(exc).lower()

    # SASL handshake / authorization failures reported by the broker
    auth_markers = (
        "saslauthentication",
        "authentication",
        "authorization",
        "unauthorized",
    )
    if any(m in exc_type or m in exc_str for m in auth_markers):
        return ErrorCategory.AUTH

    # Connection errors
    connection_markers = (
        "connectionerror",
        "kafkaconnectionerror",
        "nodenotready",
        "connection refused",
        "connection reset",
        "no route to host",
        "network unreachable",
        "name resolution",
        "dns",
        "socket",
        "broken pipe",
        "unable to bootstrap",
    )
    if any(m in exc_type or m in exc_str for m in connection_markers):
        return ErrorCategory.TRANSIENT

    if "timeout" in exc_type or "timeout" in exc_str:
        return ErrorCategory.TRANSIENT

    if isinstance(exc, (ValueError, TypeError)):
        return ErrorCategory.PERMANENT

    return ErrorCategory.UNKNOWN
