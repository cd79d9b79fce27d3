"""
Resource Adapter Base

Architectural Intent:
- Shared plumbing for every resource adapter: the API client, the state
  waiter configured with per-type defaults, and wait telemetry
- Adapters subclass it and implement create / read / update / delete
  against their own REST paths

Design Decisions:
- Poll delay and interval come from the adapter unless the run overrides
  them through the polling configuration (used by tests and impatient users)
- Passthrough import: the id is all that is needed, read fills the rest
"""

from __future__ import annotations
import logging
from typing import Any, Awaitable, Callable, Optional, Sequence, TYPE_CHECKING

from stratus.domain.errors import ProviderError, StratusError
from stratus.domain.ports.cloud_api_port import CloudApiPort
from stratus.domain.services.state_waiter import (
    RefreshFunc,
    StateChangeConf,
    check_for_retryable_error,
    retry,
)
from stratus.domain.value_objects.attribute import Schema, validate_config
from stratus.domain.value_objects.resource_data import ResourceData
from stratus.domain.value_objects.timeouts import ResourceTimeouts

if TYPE_CHECKING:
    from stratus.infrastructure.telemetry.otel_exporter import OTELExporter

logger = logging.getLogger(__name__)


class BaseResource:
    type_name: str = ""
    schema: Schema = {}
    updatable: bool = True
    importable: bool = False
    default_timeouts = ResourceTimeouts()

    # per-type polling defaults; delays in seconds
    poll_delay: float = 5.0
    poll_min_timeout: float = 3.0
    not_found_checks: int = 20

    def __init__(
        self,
        client: CloudApiPort,
        poll_delay: Optional[float] = None,
        poll_interval: float = 0.0,
        not_found_checks: Optional[int] = None,
        telemetry: Optional["OTELExporter"] = None,
    ):
        self.client = client
        if poll_delay is not None and poll_delay >= 0:
            self.poll_delay = poll_delay
        self.poll_interval = poll_interval
        if not_found_checks is not None and not_found_checks > 0:
            self.not_found_checks = not_found_checks
        self.telemetry = telemetry

    def region(self, d: ResourceData) -> str:
        return d.get("region") or self.client.region

    def validate(self, d: ResourceData) -> None:
        validate_config(self.schema, d.config)

    async def create(self, d: ResourceData) -> None:
        raise NotImplementedError

    async def read(self, d: ResourceData) -> None:
        raise NotImplementedError

    async def update(self, d: ResourceData) -> None:
        raise ProviderError(f"{self.type_name} does not support in-place updates")

    async def delete(self, d: ResourceData) -> None:
        raise NotImplementedError

    async def import_state(self, d: ResourceData) -> None:
        if not self.importable:
            raise ProviderError(f"{self.type_name} does not support import")
        await self.read(d)
        if not d.id:
            raise ProviderError(f"cannot import non-existent {self.type_name}")

    async def wait_for(
        self,
        refresh: RefreshFunc,
        target: Sequence[str],
        pending: Sequence[str] = (),
        timeout: float = 600.0,
        description: str = "",
        delay: Optional[float] = None,
        min_timeout: Optional[float] = None,
        continuous_target_occurrence: int = 1,
    ) -> Any:
        """Run a StateChangeConf with this adapter's polling defaults."""
        conf = StateChangeConf(
            refresh=refresh,
            target=target,
            pending=pending,
            timeout=timeout,
            delay=self.poll_delay if delay is None else delay,
            min_timeout=self.poll_min_timeout if min_timeout is None else min_timeout,
            poll_interval=self.poll_interval,
            not_found_checks=self.not_found_checks,
            continuous_target_occurrence=continuous_target_occurrence,
            description=description or self.type_name,
        )
        try:
            result = await conf.wait()
        except StratusError as e:
            if self.telemetry is not None:
                self.telemetry.record_wait(
                    conf.description, type(e).__name__, conf.elapsed, conf.polls
                )
            raise
        if self.telemetry is not None:
            self.telemetry.record_wait(
                conf.description, "success", result.elapsed, result.polls
            )
        return result.resource

    async def retry(
        self,
        operation: Callable[[], Awaitable[Any]],
        timeout: float,
        description: str = "",
    ) -> Any:
        """Retry an API call on 409 / 5xx until ``timeout``."""
        return await retry(
            operation,
            timeout,
            is_retryable=check_for_retryable_error,
            poll_interval=self.poll_interval,
            description=description or self.type_name,
        )
