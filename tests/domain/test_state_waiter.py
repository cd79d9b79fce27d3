"""
State Waiter Tests

Architectural Intent:
- Tests for the poll-until-state primitive and the retry helper
- Refresh functions are plain coroutines returning scripted states
"""

import asyncio
from unittest.mock import patch

import pytest

from stratus.domain.errors import (
    ApiError,
    ConflictError,
    NotFoundError,
    ProviderError,
    ServerError,
    UnexpectedStateError,
    WaitNotFoundError,
    WaitTimeoutError,
)
from stratus.domain.services.state_waiter import (
    DELETED,
    StateChangeConf,
    check_deleted,
    check_for_retryable_error,
    retry,
)
from stratus.domain.value_objects.resource_data import ResourceData


def scripted(*states):
    """Refresh function walking through ``states``; the last one repeats.

    Exceptions in the script are raised, None means "no resource".
    """
    remaining = list(states)
    calls = []

    async def refresh():
        calls.append(1)
        state = remaining.pop(0) if len(remaining) > 1 else remaining[0]
        if isinstance(state, BaseException):
            raise state
        if state is None:
            return None, ""
        return {"status": state}, state

    refresh.calls = calls
    return refresh


def conf(refresh, target, pending=(), **kwargs):
    kwargs.setdefault("poll_interval", 0.001)
    kwargs.setdefault("timeout", 5)
    return StateChangeConf(refresh=refresh, target=target, pending=pending, **kwargs)


class TestWaitForState:
    @pytest.mark.asyncio
    async def test_reaches_target(self):
        refresh = scripted("BUILD", "BUILD", "ACTIVE")
        resource = await conf(refresh, ["ACTIVE"], ["BUILD"]).wait_for_state()
        assert resource == {"status": "ACTIVE"}
        assert len(refresh.calls) == 3

    @pytest.mark.asyncio
    async def test_wait_reports_polls(self):
        result = await conf(scripted("PENDING", "ACTIVE"), ["ACTIVE"], ["PENDING"]).wait()
        assert result.state == "ACTIVE"
        assert result.polls == 2
        assert result.elapsed >= 0

    @pytest.mark.asyncio
    async def test_unexpected_state(self):
        with pytest.raises(UnexpectedStateError) as exc:
            await conf(scripted("BUILD", "ERROR"), ["ACTIVE"], ["BUILD"]).wait_for_state()
        assert exc.value.state == "ERROR"
        assert exc.value.target == ("ACTIVE",)

    @pytest.mark.asyncio
    async def test_empty_pending_treats_everything_as_pending(self):
        refresh = scripted("whatever", "something-else", "ACTIVE")
        resource = await conf(refresh, ["ACTIVE"]).wait_for_state()
        assert resource["status"] == "ACTIVE"

    @pytest.mark.asyncio
    async def test_timeout(self):
        with pytest.raises(WaitTimeoutError) as exc:
            await conf(scripted("BUILD"), ["ACTIVE"], ["BUILD"], timeout=0.05).wait_for_state()
        assert exc.value.last_state == "BUILD"
        assert isinstance(exc.value, TimeoutError)

    @pytest.mark.asyncio
    async def test_not_found_means_deleted(self):
        refresh = scripted("DELETING", NotFoundError(404))
        result = await conf(refresh, [DELETED], ["DELETING"]).wait()
        assert result.state == DELETED
        assert result.resource is None

    @pytest.mark.asyncio
    async def test_not_found_without_deleted_target_propagates(self):
        with pytest.raises(NotFoundError):
            await conf(scripted(NotFoundError(404)), ["ACTIVE"]).wait_for_state()

    @pytest.mark.asyncio
    async def test_other_refresh_errors_propagate(self):
        with pytest.raises(ServerError):
            await conf(scripted(ServerError(500)), ["ACTIVE"]).wait_for_state()

    @pytest.mark.asyncio
    async def test_missing_resource_gives_up_after_checks(self):
        refresh = scripted(None)
        with pytest.raises(WaitNotFoundError) as exc:
            await conf(refresh, ["ACTIVE"], not_found_checks=3).wait_for_state()
        assert exc.value.checks == 4

    @pytest.mark.asyncio
    async def test_missing_resource_recovers(self):
        refresh = scripted(None, None, "ACTIVE")
        resource = await conf(refresh, ["ACTIVE"], not_found_checks=5).wait_for_state()
        assert resource["status"] == "ACTIVE"

    @pytest.mark.asyncio
    async def test_empty_target_waits_for_disappearance(self):
        refresh = scripted("DELETING", "DELETING", None)
        result = await conf(refresh, [], ["DELETING"]).wait()
        assert result.resource is None
        assert result.polls == 3

    @pytest.mark.asyncio
    async def test_continuous_target_occurrence(self):
        refresh = scripted("ACTIVE", "UPDATING", "ACTIVE", "ACTIVE")
        await conf(
            refresh, ["ACTIVE"], ["UPDATING"], continuous_target_occurrence=2
        ).wait_for_state()
        assert len(refresh.calls) == 4

    @pytest.mark.asyncio
    async def test_slow_refresh_stopped_at_deadline(self):
        async def refresh():
            await asyncio.sleep(10)
            return {"status": "ACTIVE"}, "ACTIVE"

        waiter = conf(refresh, ["ACTIVE"], timeout=0.05)
        with pytest.raises(WaitTimeoutError):
            await asyncio.wait_for(waiter.wait(), timeout=2)
        assert waiter.polls == 1
        assert waiter.elapsed < 1

    @pytest.mark.asyncio
    async def test_progress_kept_when_wait_fails(self):
        waiter = conf(scripted(None), ["ACTIVE"], not_found_checks=2)
        with pytest.raises(WaitNotFoundError):
            await waiter.wait()
        assert waiter.polls == 3
        assert waiter.elapsed > 0


@pytest.fixture
def sleeps():
    """Record every sleep of the waiter instead of sleeping."""
    recorded = []

    async def fake_sleep(seconds):
        recorded.append(seconds)

    with patch("stratus.domain.services.state_waiter.asyncio.sleep", new=fake_sleep):
        yield recorded


class TestPollSchedule:
    @pytest.mark.asyncio
    async def test_backoff_doubles_from_initial_wait_up_to_cap(self, sleeps):
        refresh = scripted(*["BUILD"] * 9, "ACTIVE")
        await conf(refresh, ["ACTIVE"], ["BUILD"], timeout=600, poll_interval=0).wait_for_state()
        assert sleeps == pytest.approx([0.1, 0.2, 0.4, 0.8, 1.6, 3.2, 6.4, 10.0, 10.0])

    @pytest.mark.asyncio
    async def test_backoff_never_below_min_timeout(self, sleeps):
        refresh = scripted(*["BUILD"] * 5, "ACTIVE")
        await conf(refresh, ["ACTIVE"], ["BUILD"], timeout=600, poll_interval=0, min_timeout=15.0).wait_for_state()
        assert sleeps == [15.0] * 5

    @pytest.mark.asyncio
    async def test_min_timeout_raises_starting_wait(self, sleeps):
        refresh = scripted("BUILD", "BUILD", "BUILD", "ACTIVE")
        await conf(refresh, ["ACTIVE"], ["BUILD"], timeout=600, poll_interval=0, min_timeout=0.5).wait_for_state()
        assert sleeps == pytest.approx([0.5, 1.0, 2.0])

    @pytest.mark.asyncio
    async def test_poll_interval_overrides_backoff(self, sleeps):
        refresh = scripted("BUILD", "BUILD", "BUILD", "ACTIVE")
        await conf(refresh, ["ACTIVE"], ["BUILD"], timeout=600, poll_interval=2.0, min_timeout=15.0).wait_for_state()
        assert sleeps == [2.0, 2.0, 2.0]

    @pytest.mark.asyncio
    async def test_delay_before_first_poll(self, sleeps):
        refresh = scripted("BUILD", "ACTIVE")
        await conf(refresh, ["ACTIVE"], ["BUILD"], delay=5.0, timeout=600, poll_interval=1.0).wait_for_state()
        assert sleeps == [5.0, 1.0]

    @pytest.mark.asyncio
    async def test_no_sleep_when_first_poll_succeeds(self, sleeps):
        await conf(scripted("ACTIVE"), ["ACTIVE"], timeout=600, poll_interval=0).wait_for_state()
        assert sleeps == []


class TestRetry:
    @pytest.mark.asyncio
    async def test_retries_conflicts(self):
        attempts = []

        async def operation():
            attempts.append(1)
            if len(attempts) < 3:
                raise ConflictError(409)
            return "done"

        assert await retry(operation, 5, min_interval=0, poll_interval=0.001) == "done"
        assert len(attempts) == 3

    @pytest.mark.asyncio
    async def test_non_retryable_raises_immediately(self):
        attempts = []

        async def operation():
            attempts.append(1)
            raise ApiError(400)

        with pytest.raises(ApiError):
            await retry(operation, 5, poll_interval=0.001)
        assert len(attempts) == 1

    @pytest.mark.asyncio
    async def test_timeout_carries_last_error(self):
        async def operation():
            raise ServerError(503)

        with pytest.raises(WaitTimeoutError) as exc:
            await retry(operation, 0.05, poll_interval=0.001)
        assert isinstance(exc.value.last_error, ServerError)

    def test_retryable_classification(self):
        assert check_for_retryable_error(ConflictError(409))
        assert check_for_retryable_error(ServerError(502))
        assert not check_for_retryable_error(NotFoundError(404))
        assert not check_for_retryable_error(ValueError("x"))


class TestCheckDeleted:
    def test_not_found_clears_id(self):
        d = ResourceData("lts_group_v2", {}, resource_id="g-1")
        check_deleted(d, NotFoundError(404), "Error retrieving group")
        assert d.id == ""

    def test_other_errors_wrapped(self):
        d = ResourceData("lts_group_v2", {}, resource_id="g-1")
        with pytest.raises(ProviderError, match="Error retrieving group"):
            check_deleted(d, ServerError(500), "Error retrieving group")
        assert d.id == "g-1"
