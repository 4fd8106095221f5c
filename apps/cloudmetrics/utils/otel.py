"""
OpenTelemetry setup for the cloud metrics exporter.

Traces one span per reconcile pass (cloudmetrics.reconcile) with child spans
for each CR listing and each provider scrape call, so a slow CloudWatch
query shows up against the pass it delayed. Log records get trace/span IDs
through LoggingInstrumentor. Outgoing HTTP is not instrumented: the only
outbound calls are the Kubernetes client and boto3.
"""

from __future__ import annotations

import os
import logging

from fastapi import FastAPI

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.logging import LoggingInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from ..config import settings


def setup_otel(app: FastAPI) -> None:
    """
    Configure OpenTelemetry for the cloud metrics exporter.

    Reads OTLP endpoint from:
      - OTEL_EXPORTER_OTLP_ENDPOINT (default: http://smartops-otelcol:4317)
    """

    service_name = os.getenv("OTEL_SERVICE_NAME", "smartops-cloudmetrics")
    environment = os.getenv("SMARTOPS_ENV", "dev")
    namespace = os.getenv("SMARTOPS_NAMESPACE", "smartops-dev")

    # 1) TracerProvider with resource
    resource = Resource.create(
        {
            "service.name": service_name,
            "service.namespace": namespace,
            "deployment.environment": environment,
            "service.version": "0.1.0",
            "smartops.component": "cloudmetrics",
        }
    )

    provider = TracerProvider(resource=resource)
    trace.set_tracer_provider(provider)

    # 2) OTLP gRPC exporter
    span_exporter = OTLPSpanExporter(
        endpoint=settings.OTel_Endpoint,
        insecure=True,
    )

    provider.add_span_processor(BatchSpanProcessor(span_exporter))

    # 3) Instrument FastAPI and logging
    FastAPIInstrumentor().instrument_app(app)

    LoggingInstrumentor().instrument(
        set_logging_format=True,
    )

    # 4) Configure Python logging root level (INFO by default)
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
