"""
Start offset resolution for partition assignment.

An offset policy name ("latest", "earliest", anything else) is turned into a
concrete start offset exactly once, when a topic-partition is assigned.

Two strategies exist for "earliest":
    BOUNDED        read the partition watermarks and start at most
                   MAX_EARLIEST messages behind the high watermark
    TRUE_EARLIEST  start at the lowest retained offset, however far back
"""

import logging
from enum import Enum
from typing import TYPE_CHECKING

from kafka_datasource.common.exceptions import OffsetResolutionError
from kafka_datasource.common.logging import get_logger, log_with_context

if TYPE_CHECKING:
    from kafka_datasource.transport import BrokerTransport

logger = get_logger(__name__)

# Broker sentinels, same values as the ListOffsets API
LAST_OFFSET = -1  # next offset to be written
FIRST_OFFSET = -2  # lowest retained offset

# Largest backlog replayed on an "earliest" assignment under BOUNDED
MAX_EARLIEST = 100


class OffsetPolicy(Enum):
    """Where a freshly assigned reader starts."""

    LATEST = "latest"
    EARLIEST = "earliest"
    DEFAULT = "default"

    @classmethod
    def parse(cls, value: str) -> "OffsetPolicy":
        """Parse a policy name; unrecognized names map to DEFAULT."""
        for policy in (cls.LATEST, cls.EARLIEST):
            if value == policy.value:
                return policy
        return cls.DEFAULT


class OffsetStrategy(Enum):
    """How the "earliest" policy is resolved."""

    BOUNDED = "bounded"
    TRUE_EARLIEST = "true_earliest"

    @classmethod
    def parse(cls, value: str) -> "OffsetStrategy":
        """
        Parse a strategy name.

        Raises:
            ValueError: If the name is not a known strategy
        """
        normalized = value.strip().lower().replace("-", "_")
        for strategy in cls:
            if strategy.value == normalized:
                return strategy
        raise ValueError(
            f"unknown earliest offset strategy {value!r}, "
            f"expected one of {[s.value for s in cls]}"
        )


DEFAULT_OFFSET_STRATEGY = OffsetStrategy.TRUE_EARLIEST


def bounded_start_offset(low: int, high: int, window: int = MAX_EARLIEST) -> int:
    """
    Pick a start offset from a watermark pair.

    Returns low when the retained range fits in the window, otherwise the
    offset `window` messages behind high.
    """
    if high - low > window:
        return high - window
    return low


class OffsetResolver:
    """
    Resolves an offset policy to a concrete start offset.

    Only the BOUNDED "earliest" resolution talks to the broker; every other
    combination returns a sentinel without a round trip.
    """

    def __init__(
        self,
        transport: "BrokerTransport",
        strategy: OffsetStrategy = DEFAULT_OFFSET_STRATEGY,
    ):
        self.transport = transport
        self.strategy = strategy

    async def resolve(self, policy: OffsetPolicy, topic: str, partition: int) -> int:
        """
        Resolve the start offset for a topic-partition.

        Args:
            policy: Offset policy from the assignment request
            topic: Topic name
            partition: Partition index

        Returns:
            Concrete offset or one of LAST_OFFSET / FIRST_OFFSET

        Raises:
            OffsetResolutionError: If the watermarks could not be read
        """
        if policy is not OffsetPolicy.EARLIEST:
            return LAST_OFFSET

        if self.strategy is OffsetStrategy.TRUE_EARLIEST:
            return FIRST_OFFSET

        try:
            low, high = await self.transport.read_watermarks(topic, partition)
        except Exception as e:
            raise OffsetResolutionError(
                f"unable to read offsets for {topic}[{partition}]",
                cause=e,
                context={"topic": topic, "partition": partition},
            ) from e

        offset = bounded_start_offset(low, high)
        log_with_context(
            logger,
            logging.DEBUG,
            "Resolved earliest offset from watermarks",
            topic=topic,
            partition=partition,
            offset=offset,
            strategy=self.strategy.value,
        )
        return offset
