"""OpenTelemetry adapter for search metrics.

Why: p95 latency, partial-result rate and partition failure counts are the
signals that tell whether the cold tier is healthy.
"""

from dataclasses import dataclass
from importlib import import_module
from typing import Any

import structlog

from tiered_search.application.ports import TelemetryPort

logger = structlog.get_logger()


@dataclass
class OtelConfig:
    """Configuration for OpenTelemetry."""

    service_name: str = "tiered-search"
    otlp_endpoint: str | None = None  # e.g., "http://localhost:4317"
    environment: str = "production"
    enable_console: bool = False


class OpenTelemetryAdapter(TelemetryPort):
    """OpenTelemetry adapter for counters and histograms.

    Metrics:
    - Counters: incr() for events (queries, failed/missing partitions, deadlines)
    - Histograms: observe() for distributions (latency, phase timings)

    Note: Metrics become no-ops if opentelemetry-sdk is not installed.
    """

    def __init__(self, cfg: OtelConfig) -> None:
        self._cfg = cfg
        self._meter: Any | None = None
        self._counters: dict[str, Any] = {}
        self._histograms: dict[str, Any] = {}
        self._init_otel()

    @property
    def enabled(self) -> bool:
        return self._meter is not None

    def _init_otel(self) -> None:
        """Initialize the SDK with lazy imports.

        Sets up:
        - OTLP exporter (if endpoint configured)
        - Console exporter (if enable_console=True)
        - Meter for creating instruments
        """
        try:
            otel_sdk = import_module("opentelemetry.sdk.metrics")
            otel_export = import_module("opentelemetry.sdk.metrics.export")
            otel_metrics = import_module("opentelemetry.metrics")
            otel_resources = import_module("opentelemetry.sdk.resources")

            resource = otel_resources.Resource.create(
                {
                    "service.name": self._cfg.service_name,
                    "deployment.environment": self._cfg.environment,
                }
            )

            readers = []
            if self._cfg.otlp_endpoint:
                otel_otlp = import_module("opentelemetry.exporter.otlp.proto.grpc.metric_exporter")
                otlp_exporter = otel_otlp.OTLPMetricExporter(endpoint=self._cfg.otlp_endpoint)
                readers.append(otel_export.PeriodicExportingMetricReader(otlp_exporter))
            if self._cfg.enable_console:
                console_exporter = otel_export.ConsoleMetricExporter()
                readers.append(otel_export.PeriodicExportingMetricReader(console_exporter))

            provider = otel_sdk.MeterProvider(resource=resource, metric_readers=readers)
            otel_metrics.set_meter_provider(provider)
            self._meter = otel_metrics.get_meter(__name__)

        except Exception as ex:
            logger.warning("telemetry_disabled", error=str(ex))
            self._meter = None

    def incr(self, name: str, tags: dict[str, Any] | None = None, value: int = 1) -> None:
        """Increment a counter metric.

        Examples:
            - incr("search.queries", {"status": "ok"})
            - incr("search.partitions.failed", value=2)
        """
        if self._meter is None:
            return

        try:
            if name not in self._counters:
                self._counters[name] = self._meter.create_counter(
                    name=name,
                    description=f"Counter for {name}",
                )
            self._counters[name].add(value, attributes=tags or {})
        except Exception as ex:
            # never fail a query on a metrics error
            logger.debug("telemetry_incr_failed", metric=name, error=str(ex))

    def observe(self, name: str, value: float, tags: dict[str, Any] | None = None) -> None:
        """Record a value on a histogram.

        Examples:
            - observe("search.latency_ms", 12.5, {"status": "ok"})
            - observe("search.phase2_ms", 3.1, {})
        """
        if self._meter is None:
            return

        try:
            if name not in self._histograms:
                self._histograms[name] = self._meter.create_histogram(
                    name=name,
                    description=f"Histogram for {name}",
                )
            self._histograms[name].record(value, attributes=tags or {})
        except Exception as ex:
            logger.debug("telemetry_observe_failed", metric=name, error=str(ex))
