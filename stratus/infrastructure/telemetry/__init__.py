"""OpenTelemetry metrics and spans for waits, API calls and resource operations."""

from stratus.infrastructure.telemetry.otel_exporter import (
    OTELExporter,
    OTELConfig,
    create_exporter,
)

__all__ = ["OTELExporter", "OTELConfig", "create_exporter"]
