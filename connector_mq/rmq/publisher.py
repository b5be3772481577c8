"""
Confirmed, persistent publishing.

Each send runs in its own confirm channel and only returns once the broker
has acknowledged the message. Nothing is retried here: retrying is the
caller's decision.
"""

import json
import logging
from typing import Any, Union

from amqpstorm import Channel
from opentelemetry import trace

from connector_mq.rmq import util
from connector_mq.rmq.config import BrokerConfig, InternalQueue
from connector_mq.rmq.exceptions import PublishError
from connector_mq.rmq.executor import ChannelExecutor

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

PERSISTENT_DELIVERY_MODE = 2


def serialize_message(message: Any) -> str:
    """Compact JSON text of a message, e.g. ``{"type":"test"}``."""
    return json.dumps(message, separators=(",", ":"))


class RabbitPublisher:
    """Publishes to the connector and worker exchanges."""

    def __init__(self, config: BrokerConfig, executor: ChannelExecutor) -> None:
        self._config = config
        self._executor = executor

    def send(self, exchange: str, routing_key: str, message: Union[str, bytes]) -> bool:
        """
        Publish a persistent message and wait for the broker confirm.

        Args:
            exchange: Exchange name
            routing_key: Routing key
            message: Opaque payload, text is sent UTF-8 encoded

        Returns:
            True once the broker has confirmed the message

        Raises:
            PublishError: The broker negatively confirmed the message
            BrokerChannelError: The broker rejected the publish
            BrokerConnectionError: The broker could not be reached
        """
        body = message.encode("utf-8") if isinstance(message, str) else message

        def _publish(channel: Channel) -> bool:
            confirmed = channel.basic.publish(
                body=body,
                routing_key=routing_key,
                exchange=exchange,
                properties={"delivery_mode": PERSISTENT_DELIVERY_MODE},
            )
            if not confirmed:
                raise PublishError(
                    f"Message to {exchange} with routing key {routing_key} was not confirmed",
                    {"exchange": exchange, "routing_key": routing_key},
                )
            return True

        with tracer.start_as_current_span("QUEUE send") as span:
            span.set_attribute("messaging.system", "rabbitmq")
            span.set_attribute("messaging.destination.name", exchange)
            span.set_attribute("messaging.rabbitmq.destination.routing_key", routing_key)
            span.set_attribute("messaging.message.body.size", len(body))
            result = self._executor.execute(_publish)

        logger.debug(
            "Message published to exchange %s with routing key %s",
            exchange,
            routing_key,
        )
        return result

    def push_to_sync(self, message: Any) -> bool:
        """Send a message to the internal sync worker queue."""
        return self.send(
            util.worker_exchange(self._config.prefix),
            util.push_routing(self._config.prefix, InternalQueue.SYNC.value),
            serialize_message(message),
        )

    def push_to_playbook(self, message: Any) -> bool:
        """Send a message to the internal playbook worker queue."""
        return self.send(
            util.worker_exchange(self._config.prefix),
            util.push_routing(self._config.prefix, InternalQueue.PLAYBOOK.value),
            serialize_message(message),
        )

    def push_to_connector(self, connector_id: str, message: Any) -> bool:
        """Send a message to a connector's listen queue."""
        return self.send(
            util.connector_exchange(self._config.prefix),
            util.listen_routing(self._config.prefix, connector_id),
            serialize_message(message),
        )
