"""Snowflake-style ID generator for wallets, bets, outcomes, stakes and ledger entries.

IDs are strings of a 64-bit integer whose high bits are a millisecond
timestamp, so IDs minted by one process sort in creation order. Ledger
entries rely on that when two entries share a created_at timestamp.
"""

import threading
import time

from config.settings import settings


class SnowflakeIdGenerator:
    """Snowflake ID generator.

    Layout (64 bits):
      - 41 bits: millisecond timestamp (since custom epoch)
      - 10 bits: machine_id (0-1023)
      - 12 bits: sequence (0-4095 per millisecond)
    """

    EPOCH_MS = 1_735_689_600_000  # 2025-01-01T00:00:00Z
    _MACHINE_BITS = 10
    _SEQUENCE_BITS = 12
    _MAX_SEQUENCE = (1 << _SEQUENCE_BITS) - 1

    def __init__(self, machine_id: int = 0) -> None:
        if not (0 <= machine_id < (1 << self._MACHINE_BITS)):
            raise ValueError(f"machine_id must be 0-{(1 << self._MACHINE_BITS) - 1}")
        self._machine_id = machine_id
        self._sequence = 0
        self._last_timestamp_ms = -1
        self._lock = threading.Lock()

    def next_id(self) -> str:
        with self._lock:
            ts = self._current_ms()
            if ts < self._last_timestamp_ms:
                # Wall clock stepped backwards; never reuse an earlier timestamp.
                ts = self._last_timestamp_ms
            if ts == self._last_timestamp_ms:
                self._sequence = (self._sequence + 1) & self._MAX_SEQUENCE
                if self._sequence == 0:
                    ts = self._wait_next_ms(ts)
            else:
                self._sequence = 0

            self._last_timestamp_ms = ts
            id_int = (
                ((ts - self.EPOCH_MS) << (self._MACHINE_BITS + self._SEQUENCE_BITS))
                | (self._machine_id << self._SEQUENCE_BITS)
                | self._sequence
            )
            return str(id_int)

    @classmethod
    def timestamp_ms(cls, snowflake_id: str) -> int:
        """Recover the epoch-millisecond timestamp embedded in an ID."""
        return (int(snowflake_id) >> (cls._MACHINE_BITS + cls._SEQUENCE_BITS)) + cls.EPOCH_MS

    def _current_ms(self) -> int:
        return int(time.time() * 1000)

    def _wait_next_ms(self, last_ts: int) -> int:
        ts = self._current_ms()
        while ts <= last_ts:
            ts = self._current_ms()
        return ts


_default_generator = SnowflakeIdGenerator(machine_id=settings.ID_MACHINE_ID)


def generate_id() -> str:
    """Generate a unique snowflake-style string ID using the process-wide generator."""
    return _default_generator.next_id()
