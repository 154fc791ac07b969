"""Logging, request logging and tracing utilities."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from logging.config import dictConfig
from typing import Any, Mapping
from uuid import UUID

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from ticketgraph.core.config import Settings

REQUEST_LOGGER_NAME = "ticketgraph.requests"

_TRACER_INITIALISED = False

request_logger = logging.getLogger(REQUEST_LOGGER_NAME)


def _parse_headers(header_string: str | None) -> dict[str, str]:
    if not header_string:
        return {}
    headers: dict[str, str] = {}
    for item in header_string.split(","):
        if "=" not in item:
            continue
        key, value = item.split("=", 1)
        headers[key.strip()] = value.strip()
    return headers


def configure_logging(settings: Settings) -> logging.Logger:
    """Configure the application logger based on settings."""

    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {"format": settings.log_format},
                "request": {"format": "%(message)s"},
            },
            "handlers": {
                "default": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                    "level": level,
                },
                "request": {
                    "class": "logging.StreamHandler",
                    "formatter": "request",
                    "level": logging.INFO,
                },
            },
            "loggers": {
                REQUEST_LOGGER_NAME: {
                    "handlers": ["request"],
                    "level": logging.INFO,
                    "propagate": False,
                },
            },
            "root": {
                "handlers": ["default"],
                "level": level,
            },
        }
    )

    logger = logging.getLogger(settings.app_name)
    logger.setLevel(level)
    return logger


def build_request_log_line(
    *,
    req_id: UUID,
    method: str,
    path: str,
    status_code: int,
    user_id: str | None,
    client_error: str | None = None,
    error_data: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    """Assemble the structured record written once per handled request."""

    return {
        "uuid": str(req_id),
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "http_method": method,
        "http_path": path,
        "status": status_code,
        "user_id": user_id,
        "client_error": client_error,
        "error_data": dict(error_data) if error_data is not None else None,
    }


def log_request(**fields: Any) -> None:
    """Write the request log line as a single JSON document."""

    line = build_request_log_line(**fields)
    request_logger.info(json.dumps(line, default=str))


def init_tracer(settings: Settings) -> TracerProvider | None:
    """Initialise the OpenTelemetry tracer if enabled in settings."""

    global _TRACER_INITIALISED

    if _TRACER_INITIALISED or not settings.otel_enabled:
        return None

    resource = Resource(attributes={"service.name": settings.otel_service_name})
    provider = TracerProvider(resource=resource)

    exporter_kwargs: dict[str, object] = {}
    if settings.otel_exporter_otlp_endpoint:
        exporter_kwargs["endpoint"] = settings.otel_exporter_otlp_endpoint
    headers = _parse_headers(settings.otel_exporter_otlp_headers)
    if headers:
        exporter_kwargs["headers"] = headers

    exporter = OTLPSpanExporter(**exporter_kwargs)
    provider.add_span_processor(BatchSpanProcessor(exporter))

    trace.set_tracer_provider(provider)
    _TRACER_INITIALISED = True
    return provider


def shutdown_tracer(provider: TracerProvider | None) -> None:
    """Shut down the configured tracer provider."""

    if provider is None:
        return

    global _TRACER_INITIALISED
    provider.shutdown()
    _TRACER_INITIALISED = False
