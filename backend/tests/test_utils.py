"""Time and database helper tests."""
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import OperationalError

from monitorhealth.utils.db_utils import is_transient, retry_on_lock
from monitorhealth.utils.time_utils import compute_next_check, utcnow
from tests.conftest import NOW


class TestComputeNextCheck:
    def test_advances_from_previous(self):
        assert compute_next_check(NOW - timedelta(seconds=40), 5, NOW) == NOW + timedelta(minutes=5, seconds=-40)

    def test_uses_now_without_previous(self):
        assert compute_next_check(None, 10, NOW) == NOW + timedelta(minutes=10)

    def test_realign_keeps_phase(self):
        previous = NOW - timedelta(minutes=23)
        assert compute_next_check(previous, 10, NOW, "realign") == NOW + timedelta(minutes=7)

    def test_realign_lands_after_now_on_boundary(self):
        previous = NOW - timedelta(minutes=20)
        assert compute_next_check(previous, 10, NOW, "realign") == NOW + timedelta(minutes=10)

    def test_realign_leaves_future_schedule(self):
        assert compute_next_check(NOW, 10, NOW, "realign") == NOW + timedelta(minutes=10)

    def test_utcnow_is_naive(self):
        assert utcnow().tzinfo is None


def locked_error():
    return OperationalError("COMMIT", {}, Exception("database is locked"))


class TestRetryOnLock:
    @pytest.mark.asyncio
    async def test_retries_transient_errors(self):
        operation = AsyncMock(side_effect=[locked_error(), "done"])
        assert await retry_on_lock(operation, base_delay=0) == "done"
        assert operation.await_count == 2

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self):
        operation = AsyncMock(side_effect=locked_error())
        with pytest.raises(OperationalError):
            await retry_on_lock(operation, max_retries=3, base_delay=0)
        assert operation.await_count == 3

    @pytest.mark.asyncio
    async def test_non_transient_error_is_raised(self):
        operation = AsyncMock(side_effect=OperationalError("INSERT", {}, Exception("no such table: monitors")))
        with pytest.raises(OperationalError):
            await retry_on_lock(operation, base_delay=0)
        assert operation.await_count == 1

    def test_is_transient(self):
        assert is_transient(locked_error())
        assert not is_transient(ValueError("bad value"))
