"""
Exchange, queue and routing key naming.

Every name is a pure function of the process prefix and the connector id.
These strings are read by connectors and workers outside this process, so
they must not change.
"""

from connector_mq.rmq.config import BrokerConfig, ConnectionInfo, ConnectorConfig


def connector_exchange(prefix: str) -> str:
    """
    Exchange routing listen traffic to connectors.

    Examples:
        >>> connector_exchange("")
        'amqp.connector.exchange'
        >>> connector_exchange("octi_")
        'octi_amqp.connector.exchange'
    """
    return f"{prefix}amqp.connector.exchange"


def worker_exchange(prefix: str) -> str:
    """
    Exchange routing push traffic from connectors to workers.

    Examples:
        >>> worker_exchange("octi_")
        'octi_amqp.worker.exchange'
    """
    return f"{prefix}amqp.worker.exchange"


def listen_queue(prefix: str, connector_id: str) -> str:
    """
    Examples:
        >>> listen_queue("", "conn-1")
        'listen_conn-1'
    """
    return f"{prefix}listen_{connector_id}"


def push_queue(prefix: str, connector_id: str) -> str:
    """
    Examples:
        >>> push_queue("", "conn-1")
        'push_conn-1'
    """
    return f"{prefix}push_{connector_id}"


def listen_routing(prefix: str, connector_id: str) -> str:
    """
    Examples:
        >>> listen_routing("", "conn-1")
        'listen_routing_conn-1'
    """
    return f"{prefix}listen_routing_{connector_id}"


def push_routing(prefix: str, connector_id: str) -> str:
    """
    Examples:
        >>> push_routing("", "conn-1")
        'push_routing_conn-1'
    """
    return f"{prefix}push_routing_{connector_id}"


def build_connector_config(config: BrokerConfig, connector_id: str) -> ConnectorConfig:
    """
    Derive the connector configuration record for a connector id.

    Args:
        config: Broker configuration
        connector_id: Connector identifier

    Returns:
        The record describing the connector's queues, routing keys and exchanges
    """
    prefix = config.prefix
    return ConnectorConfig(
        connection=ConnectionInfo.from_broker_config(config),
        push=push_queue(prefix, connector_id),
        push_routing=push_routing(prefix, connector_id),
        push_exchange=worker_exchange(prefix),
        listen=listen_queue(prefix, connector_id),
        listen_routing=listen_routing(prefix, connector_id),
        listen_exchange=connector_exchange(prefix),
    )
