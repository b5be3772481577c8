"""Process-wide logging setup.

Console output is always on, as plain text or JSON lines. Export of log
records over OTLP through the OpenTelemetry SDK is opt-in.
"""

import logging
import os
import sys
from typing import Optional

from opentelemetry._logs import set_logger_provider
from opentelemetry.exporter.otlp.proto.grpc._log_exporter import OTLPLogExporter
from opentelemetry.sdk._logs import LoggerProvider, LoggingHandler
from opentelemetry.sdk._logs.export import BatchLogRecordProcessor
from opentelemetry.sdk.resources import Resource

from connector_mq.logging.context import LogContext, set_context
from connector_mq.logging.formatters import StructuredFormatter

DEFAULT_SERVICE_NAME = "connector-mq"
DEFAULT_OTLP_ENDPOINT = "http://localhost:4317"
PLAIN_FORMAT = "%(asctime)s - [{app}] %(name)s - %(levelname)s - %(message)s"

# Chatty third-party loggers (amqpstorm logs heartbeats and frames)
QUIET_LOGGERS = ("amqpstorm", "urllib3")

_configured = False
_global_context: Optional[LogContext] = None


def configure_logging(
    service_name: Optional[str] = None,
    log_level: str = "INFO",
    json_format: bool = False,
    enable_otlp: bool = False,
    otlp_endpoint: Optional[str] = None,
    force_reconfigure: bool = False,
) -> LogContext:
    """Configure the root logger once per process.

    Args:
        service_name: Service name, defaults to APP_NAME then connector-mq
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        json_format: JSON lines on the console instead of plain text
        enable_otlp: Also export records over OTLP/gRPC
        otlp_endpoint: Collector endpoint, defaults to the OTEL_EXPORTER_OTLP_* env vars
        force_reconfigure: Remove the root handlers and configure again

    Returns:
        The global LogContext, set as current context of the calling thread
    """
    global _configured, _global_context

    if _configured and not force_reconfigure:
        return _global_context

    context = LogContext.from_environment()
    context.app_name = service_name or context.app_name or DEFAULT_SERVICE_NAME
    context.environment = context.environment or "development"

    root = logging.getLogger()
    if force_reconfigure:
        root.handlers.clear()
    root.setLevel(logging.getLevelName(log_level.upper()))

    if enable_otlp:
        root.addHandler(_otlp_handler(context, otlp_endpoint))
    root.addHandler(_console_handler(context, json_format))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    set_context(context)
    _global_context = context
    _configured = True

    logging.getLogger(__name__).debug(
        "Logging configured for %s (json=%s, otlp=%s)", context.app_name, json_format, enable_otlp
    )
    return context


def _resource(context: LogContext) -> Resource:
    attributes = {
        "service.name": context.app_name,
        "service.version": context.version or "unknown",
        "deployment.environment": context.environment,
    }
    if context.hostname:
        attributes["host.name"] = context.hostname
    if context.namespace:
        attributes["k8s.namespace.name"] = context.namespace
    return Resource.create(attributes)


def _otlp_handler(context: LogContext, endpoint: Optional[str]) -> logging.Handler:
    endpoint = (
        endpoint
        or os.getenv("OTEL_EXPORTER_OTLP_LOGS_ENDPOINT")
        or os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
        or DEFAULT_OTLP_ENDPOINT
    )
    provider = LoggerProvider(resource=_resource(context))
    provider.add_log_record_processor(
        BatchLogRecordProcessor(OTLPLogExporter(endpoint=endpoint, insecure=True))
    )
    set_logger_provider(provider)
    return LoggingHandler(level=logging.NOTSET, logger_provider=provider)


def _console_handler(context: LogContext, json_format: bool) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    if json_format:
        handler.setFormatter(StructuredFormatter(context))
    else:
        handler.setFormatter(logging.Formatter(PLAIN_FORMAT.format(app=context.app_name)))
    return handler


def get_global_context() -> Optional[LogContext]:
    return _global_context


def is_configured() -> bool:
    return _configured
