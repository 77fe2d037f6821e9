from typing import Optional

from opentelemetry import metrics, trace
from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from .config import settings

RESOURCE = Resource.create({"service.name": "opsledger-api", "deployment.env": settings.env})

tracer = trace.get_tracer("opsledger_api")
meter = metrics.get_meter("opsledger_api")

ledger_transitions = meter.create_counter(
    "ledger.transitions",
    unit="1",
    description="Purchase order status changes applied to the budget ledger",
)
ledger_drift_lines = meter.create_counter(
    "ledger.drift_lines",
    unit="1",
    description="Budget lines found out of step with their purchase orders",
)


def configure_tracing(otlp_endpoint: Optional[str] = None) -> None:
    tracer_provider = TracerProvider(resource=RESOURCE)
    endpoint = otlp_endpoint or settings.otlp_endpoint
    if endpoint:
        tracer_provider.add_span_processor(
            BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint))
        )
    trace.set_tracer_provider(tracer_provider)


def configure_metrics(otlp_endpoint: Optional[str] = None) -> None:
    endpoint = otlp_endpoint or settings.otlp_endpoint
    metric_readers = []
    if endpoint:
        metric_readers.append(PeriodicExportingMetricReader(OTLPMetricExporter(endpoint=endpoint)))
    metrics.set_meter_provider(MeterProvider(resource=RESOURCE, metric_readers=metric_readers))


def configure_observability() -> None:
    configure_tracing()
    configure_metrics()
