"""
Composition of the broker components around a single BrokerConfig.
"""

from concurrent.futures import Future
from typing import Any, Callable

from connector_mq.rmq.config import BrokerConfig
from connector_mq.rmq.connection import BrokerConnectionFactory
from connector_mq.rmq.executor import ChannelExecutor
from connector_mq.rmq.management import BrokerProbe
from connector_mq.rmq.publisher import RabbitPublisher
from connector_mq.rmq.subscriber import ConsumerHandle, MessageCallback, consume_queue
from connector_mq.rmq.topology import TopologyManager


class MessagingEngine:
    """
    Entry point used by the platform to talk to the broker.

    Example:
        >>> engine = MessagingEngine(BrokerConfig(hostname="rabbitmq"))
        >>> engine.topology.register_connector_queues("conn-1", "Test", "EXTERNAL_IMPORT", "external-import")
        >>> engine.publisher.push_to_connector("conn-1", {"type": "test"})
    """

    def __init__(self, config: BrokerConfig) -> None:
        self.config = config
        self.connection_factory = BrokerConnectionFactory(config)
        self.executor = ChannelExecutor(self.connection_factory)
        self.topology = TopologyManager(config, self.executor)
        self.publisher = RabbitPublisher(config, self.executor)
        self.probe = BrokerProbe(config, self.executor)

    def consume_queue(
        self,
        context: Any,
        connector_id: str,
        connection_setter: Callable[[ConsumerHandle], None],
        message_callback: MessageCallback,
    ) -> Future:
        return consume_queue(
            self.connection_factory,
            context,
            connector_id,
            connection_setter,
            message_callback,
        )
