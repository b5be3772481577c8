"""
RabbitMQ orchestration for connectors.

This package provides:
- Broker configuration and deterministic exchange/queue/routing key naming
- A connection factory with TLS support
- A channel executor running short-lived work on confirm channels
- Topology management (register/unregister connector queues)
- Confirmed persistent publishing
- A long-lived no-ack consumer per connector
- Health and metrics through the management API
"""

from connector_mq.rmq.config import (
    BindingConfig,
    BrokerConfig,
    ConnectionInfo,
    ConnectorConfig,
    ExchangeType,
    InternalQueue,
    QueueConfig,
)
from connector_mq.rmq.connection import BrokerConnectionFactory, create_ssl_context
from connector_mq.rmq.engine import MessagingEngine
from connector_mq.rmq.exceptions import (
    BrokerChannelError,
    BrokerConnectionError,
    BrokerError,
    BrokerUnavailableError,
    ManagementApiError,
    PublishError,
)
from connector_mq.rmq.executor import ChannelExecutor
from connector_mq.rmq.management import DISCONNECTED, BrokerProbe
from connector_mq.rmq.publisher import RabbitPublisher
from connector_mq.rmq.subscriber import ConsumerHandle, consume_queue
from connector_mq.rmq.topology import TopologyManager
from connector_mq.rmq.util import (
    connector_exchange,
    listen_queue,
    listen_routing,
    push_queue,
    push_routing,
    worker_exchange,
)

__all__ = [
    # Config
    "BindingConfig",
    "BrokerConfig",
    "ConnectionInfo",
    "ConnectorConfig",
    "ExchangeType",
    "InternalQueue",
    "QueueConfig",
    # Connection
    "BrokerConnectionFactory",
    "ChannelExecutor",
    "create_ssl_context",
    # Errors
    "BrokerChannelError",
    "BrokerConnectionError",
    "BrokerError",
    "BrokerUnavailableError",
    "ManagementApiError",
    "PublishError",
    # Components
    "BrokerProbe",
    "ConsumerHandle",
    "DISCONNECTED",
    "MessagingEngine",
    "RabbitPublisher",
    "TopologyManager",
    "consume_queue",
    # Naming
    "connector_exchange",
    "listen_queue",
    "listen_routing",
    "push_queue",
    "push_routing",
    "worker_exchange",
]
