"""Logging and tracing utilities for the clinic flow API."""

from __future__ import annotations

import logging
from logging.config import dictConfig

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from clinicflow.core.config import Settings

_TRACER_INITIALISED = False


def parse_headers(header_string: str | None) -> dict[str, str]:
    """Parse ``key=value,key2=value2`` OTLP header strings."""

    headers: dict[str, str] = {}
    for item in (header_string or "").split(","):
        key, sep, value = item.partition("=")
        if sep and key.strip():
            headers[key.strip()] = value.strip()
    return headers


# Driver loggers that report every connection and cursor at INFO/DEBUG.
_QUIET_LOGGERS = ("aiosqlite", "asyncpg", "asyncio")


def _level(name: str, default: int = logging.INFO) -> int:
    return getattr(logging, name.upper(), default)


def logger_levels(settings: Settings) -> dict[str, str]:
    """Per-logger levels: service code follows ``log_level``, drivers stay quiet."""

    service_level = logging.getLevelName(_level(settings.log_level))
    levels = {name: "WARNING" for name in _QUIET_LOGGERS}
    levels["sqlalchemy.engine"] = "INFO" if settings.database_echo else "WARNING"
    levels["clinicflow"] = service_level
    levels["clinicflow.printers"] = logging.getLevelName(_level(settings.printer_log_level))
    return levels


def configure_logging(settings: Settings) -> logging.Logger:
    """Install one stream handler and apply :func:`logger_levels`."""

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"default": {"format": settings.log_format}},
            "handlers": {
                "default": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                }
            },
            "loggers": {name: {"level": level} for name, level in logger_levels(settings).items()},
            "root": {"handlers": ["default"], "level": "WARNING"},
        }
    )
    return logging.getLogger("clinicflow")


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
    headers = parse_headers(settings.otel_exporter_otlp_headers)
    if headers:
        exporter_kwargs["headers"] = headers

    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(**exporter_kwargs)))
    trace.set_tracer_provider(provider)
    _TRACER_INITIALISED = True
    return provider


def shutdown_tracer(provider: TracerProvider | None) -> None:
    """Flush and shut down the configured tracer provider."""

    global _TRACER_INITIALISED

    if provider is None:
        return
    provider.shutdown()
    _TRACER_INITIALISED = False
