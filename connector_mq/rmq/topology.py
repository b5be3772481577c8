"""
Connector topology management.

Declares the connector and worker exchanges, the per-connector listen and
push queues and their bindings, and deletes them on unregistration.
"""

import logging
from typing import Any

from amqpstorm import Channel
from opentelemetry import trace

from connector_mq.rmq import util
from connector_mq.rmq.config import (
    BindingConfig,
    BrokerConfig,
    ConnectorConfig,
    ExchangeType,
    QueueConfig,
)
from connector_mq.rmq.executor import ChannelExecutor

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


def declare_exchange(channel: Channel, exchange: str) -> dict:
    """Declare a durable direct exchange, a no-op when it already exists."""
    return channel.exchange.declare(
        exchange=exchange,
        exchange_type=ExchangeType.DIRECT.value,
        durable=True,
    )


def declare_queue(channel: Channel, queue_config: QueueConfig) -> dict:
    logger.debug("Declaring queue with config: %s", queue_config)
    return channel.queue.declare(
        queue=queue_config.name,
        durable=queue_config.durable,
        exclusive=queue_config.exclusive,
        auto_delete=queue_config.auto_delete,
        arguments=queue_config.arguments,
    )


def bind_queue(channel: Channel, queue: str, binding: BindingConfig) -> dict:
    result = channel.queue.bind(
        queue=queue,
        exchange=binding.exchange,
        routing_key=binding.routing_key,
    )
    logger.debug(
        "Queue %s bound to exchange %s with routing key '%s'",
        queue,
        binding.exchange,
        binding.routing_key,
    )
    return result


class TopologyManager:
    """Provisions and removes the broker objects owned by connectors."""

    def __init__(self, config: BrokerConfig, executor: ChannelExecutor) -> None:
        self._config = config
        self._executor = executor

    @property
    def connector_exchange(self) -> str:
        return util.connector_exchange(self._config.prefix)

    @property
    def worker_exchange(self) -> str:
        return util.worker_exchange(self._config.prefix)

    def connector_config(self, connector_id: str) -> ConnectorConfig:
        return util.build_connector_config(self._config, connector_id)

    def queue_arguments(self, connector_id: str, name: str, connector_type: str, scope: Any) -> dict[str, Any]:
        """
        Descriptive arguments attached to both connector queues.

        Only ``x-queue-type`` is interpreted by the broker, the rest is there
        for operators browsing the management UI.
        """
        arguments: dict[str, Any] = {
            "name": name,
            "config": {"id": connector_id, "type": connector_type, "scope": scope},
        }
        if self._config.queue_type:
            arguments["x-queue-type"] = self._config.queue_type
        return arguments

    def register_connector_queues(
        self,
        connector_id: str,
        name: str,
        connector_type: str,
        scope: Any,
    ) -> ConnectorConfig:
        """
        Create the exchanges, queues and bindings for a connector.

        All declarations share one channel. Any failure aborts the whole
        registration without cleanup; calling again is safe because every
        declaration and binding is idempotent.

        Args:
            connector_id: Connector identifier
            name: Connector display name
            connector_type: Connector type, e.g. EXTERNAL_IMPORT
            scope: Connector scope

        Returns:
            The connector configuration record
        """
        connector_config = self.connector_config(connector_id)
        arguments = self.queue_arguments(connector_id, name, connector_type, scope)

        def _register(channel: Channel) -> bool:
            declare_exchange(channel, connector_config.listen_exchange)
            declare_exchange(channel, connector_config.push_exchange)

            declare_queue(channel, QueueConfig(name=connector_config.listen, arguments=arguments))
            bind_queue(
                channel,
                connector_config.listen,
                BindingConfig(connector_config.listen_exchange, connector_config.listen_routing),
            )

            declare_queue(channel, QueueConfig(name=connector_config.push, arguments=arguments))
            bind_queue(
                channel,
                connector_config.push,
                BindingConfig(connector_config.push_exchange, connector_config.push_routing),
            )
            return True

        with tracer.start_as_current_span("QUEUE register") as span:
            span.set_attribute("messaging.system", "rabbitmq")
            span.set_attribute("connector.id", connector_id)
            self._executor.execute(_register)

        logger.info("Connector queues registered for %s (%s)", connector_id, name)
        return connector_config

    def unregister_connector(self, connector_id: str) -> dict[str, Any]:
        """
        Delete the listen queue, then the push queue, in two separate calls.

        Returns:
            ``{"listen": ..., "push": ...}`` with the broker's delete results
        """
        connector_config = self.connector_config(connector_id)
        with tracer.start_as_current_span("QUEUE unregister") as span:
            span.set_attribute("messaging.system", "rabbitmq")
            span.set_attribute("connector.id", connector_id)
            listen = self._executor.execute(
                lambda channel: channel.queue.delete(queue=connector_config.listen)
            )
            push = self._executor.execute(
                lambda channel: channel.queue.delete(queue=connector_config.push)
            )
        logger.info("Connector queues deleted for %s", connector_id)
        return {"listen": listen, "push": push}

    def unregister_exchanges(self) -> None:
        """
        Delete the connector and worker exchanges.

        Unconditional: queues still bound are simply unbound by the broker.
        """
        for exchange in (self.connector_exchange, self.worker_exchange):
            self._executor.execute(
                lambda channel, exchange=exchange: channel.exchange.delete(exchange=exchange)
            )
            logger.warning("Exchange %s deleted", exchange)
