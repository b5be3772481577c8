"""Logger factory with automatic context injection."""

import logging

from connector_mq.logging.context import get_context


class ContextLogger(logging.LoggerAdapter):
    """Logger adapter that adds the current LogContext to every record.

    Values passed explicitly through ``extra`` take precedence.
    """

    def process(self, msg, kwargs):
        extra = kwargs.get("extra", {})
        context = get_context()
        if context:
            for key, value in context.to_dict().items():
                extra.setdefault(key, value)
        kwargs["extra"] = extra
        return msg, kwargs


def get_logger(name: str) -> ContextLogger:
    """Get a logger with automatic context injection.

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("Consuming connector queue")
    """
    return ContextLogger(logging.getLogger(name), {})
