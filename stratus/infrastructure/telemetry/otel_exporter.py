"""
OpenTelemetry Exporter

Architectural Intent:
- Exports provider telemetry to OTLP-compatible backends
- Wait durations and poll counts show which resource types converge slowly
- API request counts by status code expose throttling and conflicts
- One span per resource operation, tagged with address and type

Security:
- Endpoint defaults to empty string (must be explicitly configured)
- Non-localhost http:// endpoints rejected unless insecure=True
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Any
from urllib.parse import urlparse
import logging
from datetime import datetime, UTC

from opentelemetry import metrics, trace
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource, SERVICE_NAME
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter

from stratus.domain.errors import ValidationError

logger = logging.getLogger(__name__)

WAIT_DURATION = "stratus.wait.duration_seconds"
WAIT_POLLS = "stratus.wait.polls"
API_REQUESTS = "stratus.api.requests"
OPERATION_DURATION = "stratus.resource.operation_seconds"

HISTOGRAM = "histogram"
COUNTER = "counter"
GAUGE = "gauge"

LOCAL_HOSTS = ("localhost", "127.0.0.1", "::1")


@dataclass
class OTELConfig:
    endpoint: str = ""
    service_name: str = "stratus"
    environment: str = "development"
    enable_traces: bool = True
    enable_metrics: bool = True
    insecure: bool = False

    def __post_init__(self) -> None:
        if not self.endpoint or self.insecure:
            return
        parsed = urlparse(self.endpoint)
        if parsed.scheme == "http" and parsed.hostname not in LOCAL_HOSTS:
            raise ValidationError(
                f"Refusing plaintext export to '{self.endpoint}': "
                "use https:// or set insecure=True."
            )


class OTELExporter:
    """
    OpenTelemetry exporter for provider runs.

    Every recorded value is kept in a local buffer as well, so a run without
    a collector can still report what it measured.
    """

    def __init__(self, config: OTELConfig):
        self.config = config
        self._initialized = False
        self._buffer: list[dict[str, Any]] = []
        self._meter: Any = None
        self._instruments: dict[str, Any] = {}

    @property
    def enabled(self) -> bool:
        return self._initialized

    @property
    def buffered(self) -> list[dict[str, Any]]:
        return list(self._buffer)

    def _install_tracing(self, resource: Resource) -> None:
        exporter = OTLPSpanExporter(endpoint=self.config.endpoint, insecure=self.config.insecure)
        provider = TracerProvider(resource=resource)
        provider.add_span_processor(BatchSpanProcessor(exporter))
        trace.set_tracer_provider(provider)

    def _install_metrics(self, resource: Resource) -> None:
        exporter = OTLPMetricExporter(endpoint=self.config.endpoint, insecure=self.config.insecure)
        reader = PeriodicExportingMetricReader(exporter)
        metrics.set_meter_provider(MeterProvider(resource=resource, metric_readers=[reader]))
        self._meter = metrics.get_meter(__name__)

    def initialize(self) -> None:
        """Install the SDK providers when an endpoint is configured."""
        if not self.config.endpoint:
            logger.info("OTEL endpoint not configured, telemetry disabled")
            return

        resource = Resource(
            attributes={
                SERVICE_NAME: self.config.service_name,
                "environment": self.config.environment,
            }
        )
        try:
            if self.config.enable_traces:
                self._install_tracing(resource)
            if self.config.enable_metrics:
                self._install_metrics(resource)
        except Exception as e:
            logger.error("Failed to initialize OTEL: %s", e)
            return
        self._initialized = True
        logger.info("Exporting telemetry to %s", self.config.endpoint)

    def _instrument(self, name: str, kind: str, unit: str) -> Any:
        if self._meter is None:
            return None
        if name not in self._instruments:
            if kind == HISTOGRAM:
                factory = self._meter.create_histogram
            elif kind == COUNTER:
                factory = self._meter.create_counter
            else:
                factory = self._meter.create_gauge
            self._instruments[name] = factory(name, unit=unit)
        return self._instruments[name]

    def record_metric(
        self,
        name: str,
        value: float,
        unit: str = "",
        attributes: Optional[dict[str, str]] = None,
        kind: str = GAUGE,
    ) -> None:
        attributes = attributes or {}
        self._buffer.append(
            {
                "name": name,
                "value": value,
                "unit": unit,
                "kind": kind,
                "attributes": attributes,
                "timestamp": datetime.now(UTC).isoformat(),
            }
        )
        if not self._initialized:
            return

        instrument = self._instrument(name, kind, unit)
        if instrument is None:
            return
        if kind == HISTOGRAM:
            instrument.record(value, attributes=attributes)
        elif kind == COUNTER:
            instrument.add(value, attributes=attributes)
        else:
            instrument.set(value, attributes=attributes)

    def record_wait(
        self,
        description: str,
        outcome: str,
        elapsed: float,
        polls: int,
    ) -> None:
        """Record one finished (or failed) state wait."""
        attributes = {"resource": description, "outcome": outcome}
        self.record_metric(WAIT_DURATION, elapsed, "s", attributes, kind=HISTOGRAM)
        self.record_metric(WAIT_POLLS, float(polls), "", attributes, kind=HISTOGRAM)

    def record_api_call(self, service: str, method: str, status_code: int) -> None:
        attributes = {"service": service, "method": method, "status_code": str(status_code)}
        self.record_metric(API_REQUESTS, 1.0, attributes=attributes, kind=COUNTER)

    def record_operation(
        self,
        resource_type: str,
        operation: str,
        success: bool,
        duration_seconds: float,
    ) -> None:
        attributes = {
            "resource_type": resource_type,
            "operation": operation,
            "success": str(success),
        }
        self.record_metric(OPERATION_DURATION, duration_seconds, "s", attributes, kind=HISTOGRAM)

    def start_span(
        self,
        name: str,
        attributes: Optional[dict[str, str]] = None,
    ) -> Optional[Any]:
        if not self._initialized:
            return None
        try:
            return trace.get_tracer(__name__).start_span(name, attributes=attributes or {})
        except Exception as e:
            logger.debug("Could not start span %s: %s", name, e)
            return None

    def end_span(self, span: Any, error: Optional[BaseException] = None) -> None:
        if not span:
            return
        try:
            if error is not None:
                span.record_exception(error)
            span.end()
        except Exception as e:
            logger.debug("Could not end span: %s", e)

    def flush(self) -> None:
        """Drop the local buffer; the SDK exports on its own schedule."""
        count = len(self._buffer)
        self._buffer.clear()
        if count:
            logger.debug("Flushed %d buffered metrics", count)


def create_exporter(
    endpoint: Optional[str] = None,
    service_name: str = "stratus",
    insecure: bool = False,
) -> OTELExporter:
    exporter = OTELExporter(
        OTELConfig(endpoint=endpoint or "", service_name=service_name, insecure=insecure)
    )
    exporter.initialize()
    return exporter
