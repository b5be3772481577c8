"""Structured logging with context injection.

Example:
    ```python
    from connector_mq.logging import configure_logging, get_logger, update_context

    configure_logging(service_name="connector-mq", json_format=True)

    logger = get_logger(__name__)
    update_context(connector_id="conn-1")
    logger.info("Connector registered")
    ```
"""

from connector_mq.logging.config import configure_logging, is_configured
from connector_mq.logging.context import (
    LogContext,
    clear_context,
    get_context,
    set_context,
    update_context,
)
from connector_mq.logging.factory import get_logger

__all__ = [
    "configure_logging",
    "is_configured",
    "get_logger",
    "LogContext",
    "set_context",
    "get_context",
    "clear_context",
    "update_context",
]
