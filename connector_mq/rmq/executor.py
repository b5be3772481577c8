"""
Short-lived channel execution.

Every declare, bind, delete and publish runs through ChannelExecutor.execute:
one fresh connection, one confirm-mode channel, one unit of work, then both
are closed whatever the outcome. There is no pooling, so retrying a failed
call always starts from a new connection.
"""

import logging
from typing import Callable, TypeVar, Union

from amqpstorm import Channel, Connection
from amqpstorm.exception import AMQPError

from connector_mq.rmq.connection import BrokerConnectionFactory
from connector_mq.rmq.exceptions import translate_amqp_error

logger = logging.getLogger(__name__)

T = TypeVar("T")


def close_quietly(resource: Union[Channel, Connection], name: str) -> None:
    """
    Close a channel or connection, logging instead of raising.

    Close failures never mask the outcome of the operation that used the
    resource.
    """
    try:
        if resource.is_open:
            resource.close()
    except Exception as e:
        logger.warning("Error closing RabbitMQ %s: %s", name, e)


class ChannelExecutor:
    """
    Runs units of work on a dedicated confirm channel.

    Example:
        >>> executor = ChannelExecutor(BrokerConnectionFactory(config))
        >>> executor.execute(lambda channel: channel.queue.declare("q", durable=True))
    """

    def __init__(self, connection_factory: BrokerConnectionFactory) -> None:
        self._connection_factory = connection_factory

    @property
    def connection_factory(self) -> BrokerConnectionFactory:
        return self._connection_factory

    def execute(self, work: Callable[[Channel], T]) -> T:
        """
        Execute ``work`` with an open confirm channel.

        Args:
            work: Callable receiving the channel and returning the result

        Returns:
            Whatever ``work`` returns

        Raises:
            BrokerConnectionError: The connection failed or was lost
            BrokerChannelError: The broker rejected an operation or closed the channel
        """
        connection = self._connection_factory.connect()
        try:
            try:
                channel = connection.channel()
                channel.confirm_deliveries()
            except AMQPError as e:
                logger.error("Failed to open RabbitMQ confirm channel: %s", e)
                raise translate_amqp_error(e) from e

            try:
                return work(channel)
            except AMQPError as e:
                # amqpstorm raises asynchronous broker errors on the next call made
                # on the channel, so they surface here as the failure of this unit
                logger.error("RabbitMQ operation failed: %s", e)
                raise translate_amqp_error(e) from e
            finally:
                close_quietly(channel, "channel")
        finally:
            close_quietly(connection, "connection")
