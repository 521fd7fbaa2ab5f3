"""Snowflake identifier generator.

Identifiers are 64-bit integers, serialized as decimal strings so that
callers with float-only numbers (JavaScript) never lose precision.

Layout, most significant bits first:

    | 41 bits timestamp delta | 5 bits datacenter | 5 bits worker | 12 bits sequence |

- Timestamp: milliseconds since ``DEFAULT_EPOCH_MS`` (~69 years of range)
- Datacenter/worker: node identity, fixed per process
- Sequence: 4096 ids per millisecond per node

Uniqueness across processes relies only on every running process owning a
distinct (datacenter_id, worker_id) pair. Nothing here coordinates that.
"""

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from functools import lru_cache

from crawler_api.config import get_settings
from crawler_api.identity.errors import ClockRegressedError, GeneratorConfigError

logger = logging.getLogger(__name__)

DEFAULT_EPOCH_MS = 1609459200000  # 2021-01-01T00:00:00Z

TIMESTAMP_BITS = 41
DATACENTER_ID_BITS = 5
WORKER_ID_BITS = 5
SEQUENCE_BITS = 12

MAX_TIMESTAMP_DELTA = (1 << TIMESTAMP_BITS) - 1
MAX_DATACENTER_ID = (1 << DATACENTER_ID_BITS) - 1
MAX_WORKER_ID = (1 << WORKER_ID_BITS) - 1
MAX_SEQUENCE = (1 << SEQUENCE_BITS) - 1

WORKER_ID_SHIFT = SEQUENCE_BITS
DATACENTER_ID_SHIFT = SEQUENCE_BITS + WORKER_ID_BITS
TIMESTAMP_SHIFT = SEQUENCE_BITS + WORKER_ID_BITS + DATACENTER_ID_BITS

MAX_ID = (1 << 64) - 1


def _wall_clock_ms() -> int:
    return time.time_ns() // 1_000_000


@dataclass(frozen=True)
class SnowflakeParts:
    """Fields recovered from an identifier."""

    timestamp_delta: int
    timestamp_ms: int
    datacenter_id: int
    worker_id: int
    sequence: int

    @property
    def created_at(self) -> datetime:
        seconds, millis = divmod(self.timestamp_ms, 1000)
        return datetime.fromtimestamp(seconds, tz=timezone.utc).replace(microsecond=millis * 1000)


class SnowflakeGenerator:
    """Thread-safe, time-ordered 64-bit id generator.

    Attributes:
        datacenter_id: Coarse node group (0-31).
        worker_id: Node within the group (0-31).
        epoch_ms: Reference instant subtracted from every timestamp.
        last_timestamp: Millisecond of the last issued id (-1 before the first).
        sequence: Sequence value of the last issued id.
    """

    def __init__(
        self,
        datacenter_id: int,
        worker_id: int,
        epoch_ms: int = DEFAULT_EPOCH_MS,
        clock: Callable[[], int] = _wall_clock_ms,
    ):
        """Create a generator for one node.

        Args:
            datacenter_id: Group part of the node identity (0-31).
            worker_id: Member part of the node identity (0-31).
            epoch_ms: Custom epoch in Unix milliseconds.
            clock: Zero-argument callable returning the current Unix milliseconds.

        Raises:
            GeneratorConfigError: If any id is out of range or the epoch is
                negative or later than the clock.
        """
        if not 0 <= datacenter_id <= MAX_DATACENTER_ID:
            raise GeneratorConfigError(
                f"Datacenter ID must be 0 - {MAX_DATACENTER_ID}, got {datacenter_id}"
            )
        if not 0 <= worker_id <= MAX_WORKER_ID:
            raise GeneratorConfigError(
                f"Worker ID must be 0 - {MAX_WORKER_ID}, got {worker_id}"
            )
        if epoch_ms < 0:
            raise GeneratorConfigError(f"Epoch must be non-negative, got {epoch_ms}")
        now = clock()
        if epoch_ms > now:
            raise GeneratorConfigError(f"Epoch {epoch_ms} is ahead of the clock ({now})")

        self.datacenter_id = datacenter_id
        self.worker_id = worker_id
        self.epoch_ms = epoch_ms
        self.sequence = 0
        self.last_timestamp = -1
        self._clock = clock
        self._lock = threading.Lock()

    def next_int(self) -> int:
        """Issue the next identifier as an integer.

        Raises:
            ClockRegressedError: If the clock is behind the last issued millisecond.
            GeneratorConfigError: If the clock falls outside the epoch's range.
        """
        with self._lock:
            timestamp = self._clock()

            if timestamp < self.last_timestamp:
                raise ClockRegressedError(self.last_timestamp, timestamp)

            if timestamp == self.last_timestamp:
                sequence = (self.sequence + 1) & MAX_SEQUENCE
                if sequence == 0:
                    timestamp = self._wait_next_millis(self.last_timestamp)
            else:
                sequence = 0

            delta = timestamp - self.epoch_ms
            if not 0 <= delta <= MAX_TIMESTAMP_DELTA:
                raise GeneratorConfigError(
                    f"Timestamp {timestamp} is outside the range of epoch {self.epoch_ms}"
                )

            self.sequence = sequence
            self.last_timestamp = timestamp

            return (
                (delta << TIMESTAMP_SHIFT)
                | (self.datacenter_id << DATACENTER_ID_SHIFT)
                | (self.worker_id << WORKER_ID_SHIFT)
                | sequence
            )

    def next_id(self) -> str:
        """Issue the next identifier as a decimal string."""
        return str(self.next_int())

    def decode(self, identifier: int | str) -> SnowflakeParts:
        """Split an identifier using this generator's epoch."""
        return decode(identifier, epoch_ms=self.epoch_ms)

    def _wait_next_millis(self, last_timestamp: int) -> int:
        # Sequence exhausted; spin until the clock moves past last_timestamp
        timestamp = self._clock()
        while timestamp <= last_timestamp:
            time.sleep(0)
            timestamp = self._clock()
        return timestamp


def decode(identifier: int | str, epoch_ms: int = DEFAULT_EPOCH_MS) -> SnowflakeParts:
    """Recover the bit fields of an identifier.

    Raises:
        ValueError: If the value is not a non-negative 64-bit integer.
    """
    if isinstance(identifier, str):
        if not identifier.isdigit():
            raise ValueError(f"Not a snowflake id: {identifier!r}")
        value = int(identifier)
    else:
        value = identifier

    if not 0 <= value <= MAX_ID:
        raise ValueError(f"Snowflake id out of 64-bit range: {value}")

    delta = value >> TIMESTAMP_SHIFT
    return SnowflakeParts(
        timestamp_delta=delta,
        timestamp_ms=delta + epoch_ms,
        datacenter_id=(value >> DATACENTER_ID_SHIFT) & MAX_DATACENTER_ID,
        worker_id=(value >> WORKER_ID_SHIFT) & MAX_WORKER_ID,
        sequence=value & MAX_SEQUENCE,
    )


@lru_cache
def get_generator() -> SnowflakeGenerator:
    """Get the process-wide generator configured from settings."""
    settings = get_settings()
    generator = SnowflakeGenerator(
        datacenter_id=settings.datacenter_id,
        worker_id=settings.worker_id,
        epoch_ms=settings.id_epoch_ms,
    )
    logger.info(
        f"Snowflake generator ready (datacenter={settings.datacenter_id}, "
        f"worker={settings.worker_id})"
    )
    return generator


def generate_id() -> str:
    """Issue an identifier from the process-wide generator."""
    return get_generator().next_id()
