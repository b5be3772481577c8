"""Per-thread log attributes.

Attributes that belong on every record (service identity, the connector being
served, the operation in progress) are kept in a contextvar so the consumer
thread and the CLI each carry their own.
"""

import contextvars
import os
import socket
from dataclasses import dataclass, field, fields
from typing import Any, Dict, Optional

_current: contextvars.ContextVar[Optional["LogContext"]] = contextvars.ContextVar(
    "connector_mq_log_context", default=None
)


@dataclass
class LogContext:
    """Attributes attached to log records and spans."""

    app_name: Optional[str] = None
    environment: Optional[str] = None
    version: Optional[str] = None
    hostname: Optional[str] = None
    namespace: Optional[str] = None

    request_id: Optional[str] = None
    user_id: Optional[str] = None
    operation: Optional[str] = None

    connector_id: Optional[str] = None
    queue: Optional[str] = None
    exchange: Optional[str] = None

    custom: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Flat dictionary of the attributes that are set, custom ones included."""
        result = {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if f.name != "custom" and getattr(self, f.name) is not None
        }
        result.update(self.custom)
        return result

    @classmethod
    def from_environment(cls) -> "LogContext":
        return cls(
            app_name=os.getenv("APP_NAME"),
            environment=os.getenv("APP_ENV"),
            version=os.getenv("APP_VERSION"),
            hostname=os.getenv("HOSTNAME") or socket.gethostname(),
            namespace=os.getenv("POD_NAMESPACE"),
        )


def set_context(context: LogContext) -> None:
    _current.set(context)


def get_context() -> Optional[LogContext]:
    return _current.get()


def clear_context() -> None:
    _current.set(None)


def update_context(**kwargs) -> LogContext:
    """Set attributes on the current context, creating it when none is set.

    Keys that are not LogContext fields land in ``custom``.

    Example:
        >>> update_context(connector_id="conn-1", operation="register").connector_id
        'conn-1'
    """
    context = get_context()
    if context is None:
        context = LogContext()
        set_context(context)

    known = {f.name for f in fields(context)} - {"custom"}
    context.custom.update(kwargs.pop("custom", {}))
    for key, value in kwargs.items():
        if key in known:
            setattr(context, key, value)
        else:
            context.custom[key] = value
    return context
