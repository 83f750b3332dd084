"""Unit tests for user id generation."""

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest
from ulid import ULID

from user_api.core.errors import IdGenerationError
from user_api.core.ids import new_user_id


def test_new_user_id_is_ulid() -> None:
    user_id = new_user_id()
    assert isinstance(user_id, ULID)
    assert len(str(user_id)) == 26


def test_new_user_id_encodes_timestamp() -> None:
    now = datetime(2024, 5, 1, 12, 0, 0, 123000, tzinfo=timezone.utc)
    user_id = new_user_id(now)
    assert user_id.milliseconds == int(now.timestamp() * 1000)


def test_ids_sort_by_creation_time() -> None:
    start = datetime(2024, 1, 1, tzinfo=timezone.utc)
    ids = [str(new_user_id(start + timedelta(milliseconds=i))) for i in range(50)]
    assert ids == sorted(ids)


def test_ids_are_distinct() -> None:
    ids = {str(new_user_id()) for _ in range(1000)}
    assert len(ids) == 1000


def test_timestamp_before_epoch_fails() -> None:
    with pytest.raises(IdGenerationError):
        new_user_id(datetime(1969, 12, 31, tzinfo=timezone.utc))


def test_entropy_follows_nanosecond_clock() -> None:
    now = datetime(2024, 1, 1, tzinfo=timezone.utc)
    with patch("user_api.core.ids.time.time_ns", return_value=1_700_000_000_000_000_000):
        same_tick = {new_user_id(now) for _ in range(3)}
    with patch(
        "user_api.core.ids.time.time_ns",
        side_effect=[1_700_000_000_000_000_000 + i for i in range(3)],
    ):
        next_ticks = {new_user_id(now) for _ in range(3)}
    assert len(same_tick) == 1
    assert len(next_ticks) == 3
