"""
cellcomm Cell Module
The fixed-layout record exchanged between peers.
"""

import random

from dataclasses import dataclass, fields
from datetime import datetime
from typing import Optional

from .constants import CELL_ORDINARY, CELL_TERMINATE, PAYLOAD_BOUND


@dataclass(frozen=True)
class Cell:
    """
    One unit of protocol traffic.

    Binary format (big-endian, 22 bytes):
    +--------+----------+------+-----+-----+------+--------+--------+------+-----+---------+---------+
    | SENDER | RECEIVER | YEAR | MON | DAY | HOUR | MINUTE | SECOND | MSEC | END | PAYLOAD | PADDING |
    | int16  | int16    |int16 |int8 |int8 | int8 | int8   | int8   |int16 |int8 | int32   | 4 bytes |
    +--------+----------+------+-----+-----+------+--------+--------+------+-----+---------+---------+

    The timestamp is local wall-clock time without timezone, kept only for tracing.
    """

    sender_id: int
    receiver_id: int
    year: int
    month: int
    day: int
    hour: int
    minute: int
    second: int
    millisecond: int
    end_connection: int
    payload: int

    @classmethod
    def create(
        cls,
        sender_id: int,
        receiver_id: int,
        end_connection: bool = False,
        payload: Optional[int] = None,
        now: Optional[datetime] = None,
        rng: Optional[random.Random] = None,
    ) -> 'Cell':
        """Build a fresh cell stamped with the current time and a random payload."""
        now = now or datetime.now()
        if payload is None:
            payload = (rng or random).randrange(PAYLOAD_BOUND)

        return cls(
            sender_id=sender_id,
            receiver_id=receiver_id,
            year=now.year,
            month=now.month,
            day=now.day,
            hour=now.hour,
            minute=now.minute,
            second=now.second,
            millisecond=now.microsecond // 1000,
            end_connection=CELL_TERMINATE if end_connection else CELL_ORDINARY,
            payload=payload,
        )

    @property
    def is_termination(self) -> bool:
        """True for a termination request or acknowledgement."""
        return self.end_connection != 0

    def __str__(self) -> str:
        return "\n".join(f"{f.name}: {getattr(self, f.name)}" for f in fields(self))
