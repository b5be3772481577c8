"""
Broker health and metrics.

Metrics come from the RabbitMQ management HTTP API. Liveness goes through
AMQP instead: it declares the connector exchange, which only succeeds when
the broker is actually usable.
"""

import logging
from typing import Any, Optional, Union

from amqpstorm.management import ApiConnectionError, ApiError, ManagementApi
from opentelemetry import trace

from connector_mq.rmq import util
from connector_mq.rmq.config import BrokerConfig
from connector_mq.rmq.exceptions import (
    BrokerUnavailableError,
    ManagementApiError,
    error_payload,
)
from connector_mq.rmq.executor import ChannelExecutor
from connector_mq.rmq.topology import declare_exchange

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

DISCONNECTED = "Disconnected"


def management_url(config: BrokerConfig) -> str:
    """
    Base URL of the management API.

    Examples:
        >>> management_url(BrokerConfig(hostname="mq", management_port=15672))
        'http://mq:15672'
    """
    scheme = "https" if config.management_ssl else "http"
    return f"{scheme}://{config.management_host}:{config.management_port}"


def create_management_api(config: BrokerConfig) -> ManagementApi:
    """
    Create a management API client using the broker credentials.

    Certificate verification follows ``management_ssl_reject_unauthorized``.
    """
    return ManagementApi(
        api_url=management_url(config),
        username=config.username,
        password=config.password,
        timeout=config.timeout,
        verify=config.management_ssl_reject_unauthorized,
    )


class BrokerProbe:
    """Liveness, version and queue metrics of the broker."""

    def __init__(
        self,
        config: BrokerConfig,
        executor: ChannelExecutor,
        management_api: Optional[ManagementApi] = None,
    ) -> None:
        self._config = config
        self._executor = executor
        self._management_api = management_api

    @property
    def management_api(self) -> ManagementApi:
        if self._management_api is None:
            self._management_api = create_management_api(self._config)
        return self._management_api

    def _list_queues(self) -> list[dict[str, Any]]:
        # the default vhost is queried as /api/queues, any other as /api/queues/<vhost>
        if self._config.vhost_path:
            return self.management_api.queue.list(virtual_host=self._config.vhost)
        return self.management_api.queue.list(show_all=True)

    def metrics(self, context: Any = None, user: Union[str, None] = None) -> dict[str, Any]:
        """
        Fetch the broker overview and this process's queues.

        ``consumers`` is the consumer count of the first push queue that has
        any consumer, 0 when none has. It is a coarse "is anything consuming
        push traffic" signal, not a total.

        Args:
            context: Caller context, its request_id (if any) tags the span
            user: Caller identity, used to tag the span

        Returns:
            ``{"overview": ..., "consumers": ..., "queues": ...}``

        Raises:
            ManagementApiError: If the management API call fails
        """
        prefix = self._config.prefix
        push_prefix = util.push_queue(prefix, "")

        with tracer.start_as_current_span("QUEUE metrics") as span:
            span.set_attribute("db.name", "messaging_engine")
            span.set_attribute("db.operation", "metrics")
            if user is not None:
                span.set_attribute("enduser.id", str(user))
            request_id = getattr(context, "request_id", None)
            if request_id:
                span.set_attribute("request.id", request_id)

            try:
                overview = self.management_api.overview()
                queues = self._list_queues()
            except (ApiError, ApiConnectionError) as e:
                logger.error("RabbitMQ management API call failed: %s", e)
                raise ManagementApiError(str(e), error_payload(e)) from e

        platform_queues = [q for q in queues if q["name"].startswith(prefix)]
        push_queues = [
            q for q in platform_queues
            if q["name"].startswith(push_prefix) and q.get("consumers", 0) > 0
        ]
        consumers = push_queues[0]["consumers"] if push_queues else 0
        return {"overview": overview, "consumers": consumers, "queues": platform_queues}

    def is_alive(self) -> dict:
        """
        Check that the broker accepts connections and declarations.

        Raises:
            BrokerUnavailableError: Wrapping whatever prevented the declaration
        """
        exchange = util.connector_exchange(self._config.prefix)
        try:
            return self._executor.execute(lambda channel: declare_exchange(channel, exchange))
        except Exception as e:
            raise BrokerUnavailableError("RabbitMQ seems down", {"error": error_payload(e)}) from e

    def get_version(self, context: Any = None) -> str:
        """Broker version, or ``Disconnected`` when it cannot be read."""
        try:
            return self.metrics(context)["overview"]["rabbitmq_version"]
        except Exception as e:
            logger.debug("Unable to read RabbitMQ version: %s", e)
            return DISCONNECTED
