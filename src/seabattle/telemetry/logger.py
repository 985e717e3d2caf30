"""Console logging for the engine, optionally mirrored to an OTLP log exporter."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from opentelemetry._logs import set_logger_provider
from opentelemetry.exporter.otlp.proto.grpc._log_exporter import OTLPLogExporter
from opentelemetry.sdk._logs import LoggerProvider, LoggingHandler
from opentelemetry.sdk._logs.export import BatchLogRecordProcessor
from opentelemetry.sdk.resources import Resource

if TYPE_CHECKING:
    from .config import TelemetryConfig

LOG_FORMAT = (
    "%(asctime)s | %(levelname)s | %(name)s | %(message)s "
    "| trace_id=%(otelTraceID)s span_id=%(otelSpanID)s"
)

_state = {"console": False, "otlp": False}


class _TraceFieldDefaults(logging.Filter):
    """Records emitted outside a span still need the ids LOG_FORMAT expects."""

    def filter(self, record: logging.LogRecord) -> bool:  # pragma: no cover - trivial
        record.__dict__.setdefault("otelTraceID", "-")
        record.__dict__.setdefault("otelSpanID", "-")
        return True


def get_logger(name: str = "seabattle") -> logging.Logger:
    return logging.getLogger(name)


def configure_console_logging(level: int = logging.INFO) -> None:
    """Route engine logs to stderr in LOG_FORMAT; later calls only adjust the level."""
    root = logging.getLogger()
    if _state["console"]:
        root.setLevel(level)
        return
    if not root.handlers:
        logging.basicConfig(level=level, format=LOG_FORMAT)
    for handler in root.handlers:
        handler.addFilter(_TraceFieldDefaults())
    root.setLevel(level)
    _state["console"] = True


def init_logging(config: TelemetryConfig) -> logging.Logger:
    """Install a LoggerProvider and bridge stdlib records into it."""
    provider = LoggerProvider(resource=Resource.create(config.resource_labels()))
    if config.otlp_logs_endpoint:
        provider.add_log_record_processor(
            BatchLogRecordProcessor(
                OTLPLogExporter(endpoint=config.otlp_logs_endpoint, insecure=True)
            )
        )
    set_logger_provider(provider)
    _install_root_handler(LoggingHandler(level=logging.INFO, logger_provider=provider))
    return get_logger(config.service_name)


def _install_root_handler(handler: logging.Handler) -> None:
    configure_console_logging(logging.getLogger().level or logging.INFO)
    if _state["otlp"]:
        return
    handler.addFilter(_TraceFieldDefaults())
    logging.getLogger().addHandler(handler)
    _state["otlp"] = True
