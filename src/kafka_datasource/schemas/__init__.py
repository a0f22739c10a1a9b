"""Message schemas for kafka_datasource."""

from kafka_datasource.schemas.message import Message, decode_message

__all__ = [
    "Message",
    "decode_message",
]
