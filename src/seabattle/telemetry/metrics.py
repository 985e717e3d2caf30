"""Counters for match activity, exported over OTLP once `init_metrics` runs."""

from __future__ import annotations

from typing import TYPE_CHECKING, Mapping

from opentelemetry import metrics as otel_metrics
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.metrics import Counter, Meter
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource

if TYPE_CHECKING:  # pragma: no cover
    from .config import TelemetryConfig

MetricAttributes = Mapping[str, str | bool | int | float]

_METERS: dict[str, Meter] = {}
_METER_PROVIDER: MeterProvider | None = None
_COUNTERS: dict[str, Counter] = {}


def get_meter(name: str = "seabattle") -> Meter:
    """Meter for one component; before `init_metrics` this is the global proxy."""
    meter = _METERS.get(name)
    if meter is None:
        meter = otel_metrics.get_meter(name)
        _METERS[name] = meter
    return meter


def init_metrics(config: TelemetryConfig) -> Meter:
    global _METER_PROVIDER

    readers = []
    if config.otlp_metrics_endpoint:
        readers.append(
            PeriodicExportingMetricReader(
                OTLPMetricExporter(endpoint=config.otlp_metrics_endpoint, insecure=True),
                export_interval_millis=config.metrics_export_interval_ms,
            )
        )

    provider = MeterProvider(
        resource=Resource.create(config.resource_labels()), metric_readers=readers
    )
    otel_metrics.set_meter_provider(provider)

    _METER_PROVIDER = provider
    _METERS.clear()
    _COUNTERS.clear()
    _METERS[config.service_name] = provider.get_meter(config.service_name)
    return _METERS[config.service_name]


def match_counter(name: str, description: str = "") -> Counter:
    """Counter `name` on the service meter, created once and reused."""
    counter = _COUNTERS.get(name)
    if counter is None:
        counter = get_meter().create_counter(name, description=description)
        _COUNTERS[name] = counter
    return counter


def record_match_metric(name: str, value: float, attrs: MetricAttributes | None = None) -> None:
    match_counter(name).add(value, attributes=dict(attrs or {}))
