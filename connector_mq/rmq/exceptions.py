"""
Error taxonomy for broker operations.

amqpstorm and management API failures are translated into these types at the
edge of each operation. The original exception is always kept as
``__cause__`` and its payload is copied into ``data`` for diagnostics.
"""

from typing import Any, Optional

from amqpstorm.exception import AMQPChannelError, AMQPConnectionError, AMQPError


class BrokerError(Exception):
    """Base class for every error raised by connector_mq.rmq."""

    def __init__(self, message: str, data: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.data: dict[str, Any] = data or {}


class BrokerConnectionError(BrokerError):
    """The broker could not be reached or refused the credentials."""


class BrokerChannelError(BrokerError):
    """The broker rejected an operation on an open connection."""


class PublishError(BrokerChannelError):
    """The broker did not confirm a published message."""


class ManagementApiError(BrokerError):
    """The management HTTP API call failed."""


class BrokerUnavailableError(BrokerError):
    """Liveness failure, wraps any other broker error."""


def error_payload(error: BaseException) -> dict[str, Any]:
    """
    Extract a serialisable payload from an amqpstorm (or any) exception.

    Args:
        error: The exception raised by the client library

    Returns:
        Dictionary with the message and, for AMQP errors, the reply code,
        error type and documentation provided by the broker
    """
    if isinstance(error, BrokerError):
        return {"message": str(error), **error.data}

    payload: dict[str, Any] = {"message": str(error)}
    for attribute in ("error_code", "error_type", "documentation"):
        if hasattr(error, attribute):
            payload[attribute] = getattr(error, attribute)
    return payload


def translate_amqp_error(error: Exception) -> Exception:
    """
    Map an amqpstorm exception onto the broker error taxonomy.

    Errors that are already part of the taxonomy, and errors that do not come
    from amqpstorm, are returned unchanged.
    """
    if isinstance(error, BrokerError):
        return error
    if isinstance(error, AMQPConnectionError):
        translated: BrokerError = BrokerConnectionError(str(error), error_payload(error))
    elif isinstance(error, AMQPChannelError):
        translated = BrokerChannelError(str(error), error_payload(error))
    elif isinstance(error, AMQPError):
        translated = BrokerChannelError(str(error), error_payload(error))
    else:
        return error
    translated.__cause__ = error
    return translated
