"""
User id generation: ULIDs (48-bit millisecond timestamp + 80 random bits).

The random part comes from random.Random seeded per call with the nanosecond
clock. It is not cryptographic; uniqueness relies on the 80-bit birthday bound.
That bound only holds while the clock ticks between calls: where time_ns() is
coarse (about 15 ms on Windows) two ids created in the same tick share both
timestamp and seed, and are therefore identical.
"""

import random
import time
from datetime import datetime

from ulid import ULID

from user_api.core.errors import IdGenerationError

_MAX_TIMESTAMP_MS = (1 << 48) - 1


def new_user_id(now: datetime | None = None) -> ULID:
    """
    Build a ULID for a new user.

    ``now`` defaults to the current wall clock. Raises IdGenerationError when the
    timestamp does not fit in 48 bits (before 1970 or after year 10889).
    """
    if now is None:
        ms = time.time_ns() // 1_000_000
    else:
        ms = int(now.timestamp() * 1000)
    if ms < 0 or ms > _MAX_TIMESTAMP_MS:
        raise IdGenerationError(f"timestamp {ms}ms outside ULID range")

    entropy = random.Random(time.time_ns())
    try:
        return ULID.from_bytes(ms.to_bytes(6, "big") + entropy.randbytes(10))
    except ValueError as e:
        raise IdGenerationError(str(e)) from e
