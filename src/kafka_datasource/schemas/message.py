"""
Decoded message schema.

Message bodies are flat JSON objects mapping field names to numbers, e.g.
{"temperature": 21.5, "humidity": 40}. Anything else is rejected with
DecodeError.
"""

import json
import math
from datetime import datetime, timezone
from typing import Any, Dict, Union

from pydantic import BaseModel, Field, field_serializer

from kafka_datasource.common.exceptions import DecodeError


class Message(BaseModel):
    """One decoded record pulled from a topic-partition.

    Attributes:
        value: Field name to numeric value
        offset: Broker-assigned offset within the partition
        timestamp: Broker-assigned record timestamp (UTC)
        topic: Source topic
        partition: Source partition

    Example:
        >>> msg = Message(
        ...     value={"a": 1.5, "b": 2.0},
        ...     offset=42,
        ...     timestamp=datetime(2024, 1, 1, tzinfo=timezone.utc),
        ...     topic="sensors",
        ...     partition=0,
        ... )
    """

    value: Dict[str, float] = Field(
        ..., description="Flat mapping of field name to numeric value"
    )
    offset: int = Field(..., description="Offset within the partition", ge=0)
    timestamp: datetime = Field(..., description="Broker-assigned timestamp")
    topic: str = Field(default="", description="Source topic")
    partition: int = Field(default=0, description="Source partition", ge=0)

    @field_serializer('timestamp')
    def serialize_timestamp(self, timestamp: datetime) -> str:
        """Serialize datetime to ISO 8601 format."""
        return timestamp.isoformat()

    model_config = {
        'frozen': True,
        'json_schema_extra': {
            'examples': [
                {
                    'value': {'temperature': 21.5, 'humidity': 40.0},
                    'offset': 1042,
                    'timestamp': '2024-12-25T10:30:00+00:00',
                    'topic': 'sensors',
                    'partition': 0,
                }
            ]
        },
    }


def _is_number(value: Any) -> bool:
    # bool is an int subclass but not a number in a JSON payload
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _reject_constant(name: str) -> float:
    # json.loads accepts NaN and Infinity, which are not valid JSON
    raise ValueError(f"invalid JSON constant {name}")


def _to_float(key: str, value: Union[int, float]) -> float:
    try:
        number = float(value)
    except OverflowError as e:
        raise DecodeError(
            f"error unmarshalling message: field {key!r} is out of range",
            cause=e,
            context={"field": key},
        ) from e
    if not math.isfinite(number):
        raise DecodeError(
            f"error unmarshalling message: field {key!r} is out of range",
            context={"field": key},
        )
    return number


def decode_message(body: Union[bytes, str, None]) -> Dict[str, float]:
    """
    Decode a message body into a flat string to float mapping.

    Args:
        body: Raw record value

    Returns:
        Dict of field name to float

    Raises:
        DecodeError: If the body is empty, not valid JSON, not an object, or
            holds a non-numeric or out of range value
    """
    if body is None:
        raise DecodeError("error unmarshalling message: empty body")

    try:
        payload = json.loads(body, parse_constant=_reject_constant)
    except (ValueError, UnicodeDecodeError) as e:
        raise DecodeError("error unmarshalling message: invalid JSON", cause=e) from e

    if not isinstance(payload, dict):
        raise DecodeError(
            f"error unmarshalling message: expected object, got {type(payload).__name__}"
        )

    decoded: Dict[str, float] = {}
    for key, value in payload.items():
        if not _is_number(value):
            raise DecodeError(
                f"error unmarshalling message: field {key!r} is not a number",
                context={"field": key},
            )
        decoded[key] = _to_float(key, value)
    return decoded


def timestamp_from_millis(millis: int) -> datetime:
    """Convert a Kafka record timestamp (epoch millis) to an aware datetime."""
    return datetime.fromtimestamp(millis / 1000, tz=timezone.utc)
