"""OpenTelemetry tracing for mysqlbox.

Modules grab a tracer at import time and open spans around the lifecycle
steps; until :func:`configure_telemetry` installs an SDK provider the API
hands out no-op tracers::

    _tracer = get_tracer(__name__)

    with _tracer.start_as_current_span("mysqlbox.provision") as span:
        span.set_attribute(ATTR_CONTAINER_NAME, name)

Spans emitted: ``mysqlbox.provision`` (wraps ``mysqlbox.startup``),
``mysqlbox.teardown``, ``mysqlbox.reset_all`` and ``mysqlbox.reset_some``.
Exporting requires the ``otel`` extra: ``pip install mysqlbox[otel]``.
"""

from __future__ import annotations

import os
from typing import Any

from opentelemetry import trace

# Span attribute keys
ATTR_CONTAINER_NAME = "mysqlbox.container.name"
ATTR_CONTAINER_ID = "mysqlbox.container.id"
ATTR_IMAGE = "mysqlbox.image"
ATTR_DATABASE = "mysqlbox.database"
ATTR_HOST_PORT = "mysqlbox.host_port"
ATTR_CREDENTIAL_MODE = "mysqlbox.credential_mode"
ATTR_PROBE_ATTEMPTS = "mysqlbox.probe.attempts"
ATTR_TABLES = "mysqlbox.tables"
ATTR_TABLES_FAILED = "mysqlbox.tables.failed"

_INSTRUMENTATION_NAME = "mysqlbox"
OTLP_ENDPOINT_ENV = "OTEL_EXPORTER_OTLP_ENDPOINT"


def get_tracer(name: str | None = None) -> trace.Tracer:
    return trace.get_tracer(name or _INSTRUMENTATION_NAME)


def configure_telemetry(
    *,
    service_name: str = "mysqlbox",
    export_to_console: bool = False,
    otlp_endpoint: str | None = None,
    exporter: Any = None,
) -> Any:
    """Install an SDK tracer provider and return it.

    Parameters
    ----------
    service_name:
        The ``service.name`` resource attribute.
    export_to_console:
        Print finished spans as JSON to stdout.
    otlp_endpoint:
        Export over OTLP/gRPC. Falls back to ``$OTEL_EXPORTER_OTLP_ENDPOINT``.
    exporter:
        An extra span exporter, flushed synchronously (e.g. an in-memory
        exporter in tests).

    Raises
    ------
    ImportError
        If the ``opentelemetry-sdk`` package is not installed.
    """
    try:
        from opentelemetry.sdk.resources import Resource  # pyright: ignore[reportMissingImports]
        from opentelemetry.sdk.trace import TracerProvider  # pyright: ignore[reportMissingImports]
        from opentelemetry.sdk.trace import export  # pyright: ignore[reportMissingImports]
    except ImportError as exc:
        raise ImportError(
            "opentelemetry-sdk is required for configure_telemetry(); "
            "install mysqlbox[otel]"
        ) from exc

    provider = TracerProvider(resource=Resource.create({"service.name": service_name}))

    sync_exporters = [exporter] if exporter is not None else []
    if export_to_console:
        sync_exporters.append(export.ConsoleSpanExporter())
    for sync_exporter in sync_exporters:
        provider.add_span_processor(export.SimpleSpanProcessor(sync_exporter))

    endpoint = otlp_endpoint or os.environ.get(OTLP_ENDPOINT_ENV)
    if endpoint:
        provider.add_span_processor(export.BatchSpanProcessor(_otlp_exporter(endpoint)))

    trace.set_tracer_provider(provider)
    return provider


def _otlp_exporter(endpoint: str) -> Any:
    try:
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import (  # pyright: ignore[reportMissingImports]
            OTLPSpanExporter,
        )
    except ImportError as exc:
        raise ImportError(
            "opentelemetry-exporter-otlp is required for OTLP export; install mysqlbox[otel]"
        ) from exc
    return OTLPSpanExporter(endpoint=endpoint)
