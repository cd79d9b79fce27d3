"""
State Waiter

Architectural Intent:
- Generic poll-until-state primitive shared by every resource adapter
- Each adapter supplies only a refresh function and its own status vocabulary
  (pending / target lists); the waiting, backoff and timeout logic lives here
- Retry helper for API calls that fail transiently while the cloud is busy

Domain Logic:
- A refresh function returns (resource, status); raising ends the wait
- A 404 raised by the refresh function means "deleted" when the target
  contains DELETED
- A refresh that returns no resource counts towards not_found_checks unless
  the target is empty (waiting for disappearance)
- With an empty pending list every non-target status is treated as pending
"""

from __future__ import annotations
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, Sequence, TYPE_CHECKING

from stratus.domain.errors import (
    ApiError,
    NotFoundError,
    ProviderError,
    UnexpectedStateError,
    WaitNotFoundError,
    WaitTimeoutError,
)

if TYPE_CHECKING:
    from stratus.domain.value_objects.resource_data import ResourceData

logger = logging.getLogger(__name__)

DELETED = "DELETED"

_INITIAL_WAIT = 0.1
_MAX_WAIT = 10.0

RefreshFunc = Callable[[], Awaitable[tuple[Any, str]]]


def _next_wait(previous: Optional[float], min_timeout: float, poll_interval: float) -> float:
    if poll_interval > 0:
        return poll_interval
    wait = _INITIAL_WAIT if previous is None else min(previous * 2, _MAX_WAIT)
    return max(wait, min_timeout)


@dataclass
class WaitResult:
    """Outcome of a finished wait, kept for telemetry."""
    resource: Any
    state: Optional[str]
    polls: int
    elapsed: float


@dataclass
class StateChangeConf:
    """Configuration of a single wait for a resource to reach a target state.

    ``polls`` and ``elapsed`` describe the last run of :meth:`wait`, whether
    it succeeded or raised.
    """

    refresh: RefreshFunc
    target: Sequence[str]
    pending: Sequence[str] = ()
    timeout: float = 600.0
    delay: float = 0.0
    min_timeout: float = 0.0
    poll_interval: float = 0.0
    not_found_checks: int = 20
    continuous_target_occurrence: int = 1
    description: str = "resource"
    polls: int = field(default=0, init=False)
    elapsed: float = field(default=0.0, init=False)

    async def wait_for_state(self) -> Any:
        """Poll until the resource reaches a target state and return it."""
        result = await self.wait()
        return result.resource

    async def wait(self) -> WaitResult:
        loop = asyncio.get_running_loop()
        started = loop.time()
        self.polls = 0
        self.elapsed = 0.0
        try:
            resource, state = await self._poll(loop, started + self.timeout)
        finally:
            self.elapsed = loop.time() - started
        return WaitResult(resource, state, self.polls, self.elapsed)

    async def _refresh(self, deadline: float, last_state: Optional[str]) -> tuple[Any, str]:
        # a slow request must not outlive the deadline
        try:
            async with asyncio.timeout_at(deadline) as scope:
                return await self.refresh()
        except TimeoutError:
            if scope.expired():
                raise WaitTimeoutError(self.timeout, last_state, self.target) from None
            raise

    async def _poll(self, loop: asyncio.AbstractEventLoop, deadline: float) -> tuple[Any, Optional[str]]:
        if self.delay > 0:
            await asyncio.sleep(min(self.delay, self.timeout))

        wait: Optional[float] = None
        not_found_ticks = 0
        target_occurrence = 0
        last_state: Optional[str] = None

        while True:
            self.polls += 1
            try:
                resource, state = await self._refresh(deadline, last_state)
            except NotFoundError:
                if DELETED in self.target:
                    logger.debug("%s not found, treating as %s", self.description, DELETED)
                    return None, DELETED
                raise

            if resource is None:
                if not self.target:
                    return None, state
                not_found_ticks += 1
                if not_found_ticks > self.not_found_checks:
                    raise WaitNotFoundError(not_found_ticks)
            else:
                not_found_ticks = 0
                last_state = state
                if state in self.target:
                    target_occurrence += 1
                    if target_occurrence >= self.continuous_target_occurrence:
                        logger.debug(
                            "%s reached state %s after %d polls",
                            self.description,
                            state,
                            self.polls,
                        )
                        return resource, state
                elif self.pending and state not in self.pending:
                    raise UnexpectedStateError(state, self.target)
                else:
                    target_occurrence = 0

            logger.debug(
                "Waiting for %s to become %s (currently %s)",
                self.description,
                "/".join(self.target) or "absent",
                state,
            )

            wait = _next_wait(wait, self.min_timeout, self.poll_interval)
            remaining = deadline - loop.time()
            if remaining <= 0:
                raise WaitTimeoutError(self.timeout, last_state, self.target)
            await asyncio.sleep(min(wait, remaining))


def is_not_found(err: BaseException) -> bool:
    return isinstance(err, NotFoundError)


def check_for_retryable_error(err: BaseException) -> bool:
    """Return True when an API error is worth retrying (409, 5xx)."""
    if not isinstance(err, ApiError):
        return False
    return err.status_code == 409 or err.status_code >= 500


async def retry(
    operation: Callable[[], Awaitable[Any]],
    timeout: float,
    *,
    is_retryable: Callable[[BaseException], bool] = check_for_retryable_error,
    min_interval: float = 0.5,
    poll_interval: float = 0.0,
    description: str = "operation",
) -> Any:
    """Await ``operation`` until it succeeds or fails with a non-retryable error."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    wait: Optional[float] = None

    while True:
        try:
            return await operation()
        except Exception as err:
            if not is_retryable(err):
                raise
            remaining = deadline - loop.time()
            if remaining <= 0:
                raise WaitTimeoutError(timeout, last_error=err) from err
            logger.debug("Retrying %s after retryable error: %s", description, err)
            wait = _next_wait(wait, min_interval, poll_interval)
            await asyncio.sleep(min(wait, remaining))


def check_deleted(d: "ResourceData", err: BaseException, message: str) -> None:
    """Clear the resource id on 404, otherwise wrap and raise the error."""
    if is_not_found(err):
        logger.info("%s %s no longer exists, removing from state", d.type_name, d.id)
        d.set_id("")
        return
    raise ProviderError(f"{message}: {err}") from err
