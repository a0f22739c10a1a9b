"""
Security utilities for kafka_datasource.

Provides:
- Error message sanitization (credential removal for logs)
- Bootstrap address sanitization
"""

import re

# ---------------------------------------------------------------------------
# Error Message Sanitization
# ---------------------------------------------------------------------------

# Patterns that may contain sensitive data in error messages
SENSITIVE_PATTERNS = [
    (re.compile(r'password[=:]\s*[^&\s"\',]+', re.IGNORECASE), "password=[REDACTED]"),
    (re.compile(r'secret[=:]\s*[^&\s"\',]+', re.IGNORECASE), "secret=[REDACTED]"),
    (re.compile(r'token[=:]\s*[^&\s"\',]+', re.IGNORECASE), "token=[REDACTED]"),
    (re.compile(r"bearer\s+[a-zA-Z0-9\-_.]+", re.IGNORECASE), "bearer [REDACTED]"),
]

# Credentials embedded in a broker address (user:pass@host:port)
_USERINFO_PATTERN = re.compile(r"[^\s/@,]+:[^\s/@,]+@")


def sanitize_error_message(msg: str, max_length: int = 500) -> str:
    """
    Remove potentially sensitive data from error messages.

    Applies pattern-based redaction and truncates to max_length.

    Args:
        msg: Error message that may contain sensitive data
        max_length: Maximum length of returned message

    Returns:
        Sanitized and truncated error message
    """
    if not msg:
        return msg

    for pattern, replacement in SENSITIVE_PATTERNS:
        msg = pattern.sub(replacement, msg)

    msg = sanitize_bootstrap_servers(msg)

    if len(msg) > max_length:
        msg = msg[: max_length - 3] + "..."

    return msg


def sanitize_bootstrap_servers(servers: str) -> str:
    """
    Strip userinfo from broker addresses.

    Examples:
        >>> sanitize_bootstrap_servers("user:pw@broker:9093,broker2:9093")
        "[REDACTED]@broker:9093,broker2:9093"
    """
    if not servers:
        return servers
    return _USERINFO_PATTERN.sub("[REDACTED]@", servers)
