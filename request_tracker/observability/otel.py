"""Optional tracing and aggregation metrics.

Nothing here does any work until ``initialize`` succeeds with
``REQUEST_TRACKER_OTEL_ENABLED`` set. Metrics go to one or more sinks: the
OpenTelemetry meter, plus a Prometheus scrape endpoint when ``PROM_PORT`` is
positive. Both sinks share one table of aggregation metrics.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any

from fastapi import FastAPI

from request_tracker import config

logger = logging.getLogger("request_tracker.observability")

COUNTER = "counter"
HISTOGRAM = "histogram"

# key: (kind, metric name, description, label names)
AGGREGATION_METRICS: dict[str, tuple[str, str, str, tuple[str, ...]]] = {
    "runs": (COUNTER, "request_tracker_aggregation_runs_total", "Aggregation runs by outcome", ("root", "outcome")),
    "latency": (HISTOGRAM, "request_tracker_aggregation_latency_ms", "Aggregation wall time", ("root", "outcome")),
    "files": (COUNTER, "request_tracker_log_files_total", "Log files seen by aggregation, by status", ("root", "status")),
    "skipped": (COUNTER, "request_tracker_skipped_files_total", "Log files skipped, by reason", ("root", "reason")),
    "duplicates": (COUNTER, "request_tracker_duplicate_entries_total", "Entries dropped as duplicate request ids", ("root",)),
}


class _OtelSink:
    def __init__(self, meter: Any) -> None:
        self._instruments: dict[str, Any] = {}
        for key, (kind, name, description, _labels) in AGGREGATION_METRICS.items():
            if kind == COUNTER:
                self._instruments[key] = meter.create_counter(name, unit="1", description=description)
            else:
                self._instruments[key] = meter.create_histogram(name, unit="ms", description=description)

    def emit(self, key: str, value: float, labels: dict[str, str]) -> None:
        instrument = self._instruments[key]
        if AGGREGATION_METRICS[key][0] == COUNTER:
            instrument.add(value, labels)
        else:
            instrument.record(value, labels)


class _PrometheusSink:
    def __init__(self) -> None:
        from prometheus_client import Counter, Histogram

        self._metrics: dict[str, Any] = {}
        for key, (kind, name, description, labels) in AGGREGATION_METRICS.items():
            factory = Counter if kind == COUNTER else Histogram
            self._metrics[key] = factory(name, description, list(labels))

    def emit(self, key: str, value: float, labels: dict[str, str]) -> None:
        metric = self._metrics[key].labels(**labels)
        if AGGREGATION_METRICS[key][0] == COUNTER:
            metric.inc(value)
        else:
            metric.observe(value)


_initialized = False
_sinks: list[Any] = []
_tracer: Any | None = None
_providers: list[Any] = []
_fastapi_instrumentor: Any | None = None


def _emit(key: str, value: float, **labels: str) -> None:
    if value < 0 or (value == 0 and AGGREGATION_METRICS[key][0] == COUNTER):
        return
    clean = {name: (labels.get(name) or "").strip() or "unknown" for name in AGGREGATION_METRICS[key][3]}
    for sink in _sinks:
        try:
            sink.emit(key, value, clean)
        except Exception:  # noqa: BLE001
            logger.debug("Metric %s not recorded", key, exc_info=True)


def initialize(app: FastAPI | None = None) -> None:
    global _initialized, _tracer, _fastapi_instrumentor

    if _initialized:
        return
    _initialized = True

    if not config.OTEL_ENABLED:
        logger.info("Telemetry disabled (REQUEST_TRACKER_OTEL_ENABLED=false)")
        return

    try:
        from opentelemetry import metrics, trace
        from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
        from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
        from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
        from opentelemetry.sdk.metrics import MeterProvider
        from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
        from opentelemetry.sdk.resources import Resource
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import BatchSpanProcessor
    except ImportError as exc:
        logger.warning("OpenTelemetry dependencies unavailable: %s", exc)
        return

    base = config.OTEL_ENDPOINT.rstrip("/")
    resource = Resource.create({"service.name": config.OTEL_SERVICE_NAME or "request-tracker"})

    trace_provider = TracerProvider(resource=resource)
    trace_provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=f"{base}/v1/traces")))
    trace.set_tracer_provider(trace_provider)

    reader = PeriodicExportingMetricReader(OTLPMetricExporter(endpoint=f"{base}/v1/metrics"))
    meter_provider = MeterProvider(resource=resource, metric_readers=[reader])
    metrics.set_meter_provider(meter_provider)

    _providers[:] = [meter_provider, trace_provider]
    _tracer = trace.get_tracer("request_tracker")
    _sinks.append(_OtelSink(metrics.get_meter("request_tracker")))

    _fastapi_instrumentor = FastAPIInstrumentor()
    if app is not None:
        _fastapi_instrumentor.instrument_app(app)

    if config.PROM_PORT > 0:
        try:
            from prometheus_client import start_http_server

            start_http_server(config.PROM_PORT)
            _sinks.append(_PrometheusSink())
            logger.info("Prometheus metrics on port %s", config.PROM_PORT)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Prometheus endpoint not started: %s", exc)

    logger.info("Telemetry exporting to %s", base)


def shutdown(app: FastAPI | None = None) -> None:
    if app is not None and _fastapi_instrumentor is not None:
        try:
            _fastapi_instrumentor.uninstrument_app(app)
        except Exception:  # noqa: BLE001
            logger.debug("FastAPI uninstrumentation failed", exc_info=True)
    for provider in _providers:
        try:
            provider.shutdown()
        except Exception:  # noqa: BLE001
            logger.debug("Telemetry provider shutdown failed", exc_info=True)
    _providers.clear()
    _sinks.clear()


@contextmanager
def start_span(name: str, attributes: dict[str, Any] | None = None):
    if _tracer is None:
        yield None
        return
    with _tracer.start_as_current_span(name) as span:
        for key, value in (attributes or {}).items():
            if value is not None:
                span.set_attribute(key, value)
        yield span


def record_file_skipped(reason: str, *, root: str) -> None:
    """One log file was skipped; ``reason`` is ``malformed``, ``unreadable`` or ``unexpected``."""
    _emit("skipped", 1, root=root, reason=reason)


def record_aggregation(
    outcome: str,
    elapsed_ms: float,
    *,
    root: str,
    files_parsed: int = 0,
    files_skipped: int = 0,
    files_unrecognized: int = 0,
    duplicates_dropped: int = 0,
) -> None:
    """Record one finished (or cancelled) aggregation run."""
    _emit("runs", 1, root=root, outcome=outcome)
    _emit("latency", max(0.0, float(elapsed_ms)), root=root, outcome=outcome)
    _emit("files", files_parsed - files_unrecognized, root=root, status="parsed")
    _emit("files", files_unrecognized, root=root, status="unrecognized")
    _emit("files", files_skipped, root=root, status="skipped")
    _emit("duplicates", duplicates_dropped, root=root)
