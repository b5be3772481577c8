"""
Long-lived connector queue consumer.

Unlike the short-lived executor calls, a consumer owns one connection for as
long as the connector runs. Messages are consumed in no-ack mode: the broker
forgets a message as soon as it is sent, so a crash between delivery and
processing loses it.
"""

import contextvars
import logging
import threading
import time
from concurrent.futures import Future
from typing import Any, Callable, Optional

from amqpstorm import Channel, Connection, Message
from amqpstorm.exception import AMQPError

from connector_mq.rmq import util
from connector_mq.rmq.connection import BrokerConnectionFactory
from connector_mq.rmq.exceptions import (
    BrokerChannelError,
    BrokerError,
    error_payload,
    translate_amqp_error,
)
from connector_mq.rmq.executor import close_quietly

logger = logging.getLogger(__name__)

WATCH_INTERVAL = 1.0

MessageCallback = Callable[[Any, str], None]


class ConsumerHandle:
    """
    Handle on a consumer connection.

    Closing it is the only way to stop a consumer. Messages being processed
    when it is closed are not waited for.
    """

    def __init__(self, connection: Connection, queue: str) -> None:
        self._connection = connection
        self._queue = queue
        self._closing = threading.Event()

    @property
    def connection(self) -> Connection:
        return self._connection

    @property
    def queue(self) -> str:
        return self._queue

    @property
    def closing(self) -> bool:
        return self._closing.is_set()

    def close(self) -> None:
        logger.info("Closing consumer connection for %s", self._queue)
        self._closing.set()
        close_quietly(self._connection, "connection")


def _settle(future: Future, result: Any = None, error: Optional[BaseException] = None) -> None:
    """Resolve the future once, later outcomes are dropped."""
    if future.done():
        return
    if error is not None:
        future.set_exception(error)
    else:
        future.set_result(result)


def _watch_connection(handle: ConsumerHandle) -> None:
    """Block until the handle is closed, raising on connection errors."""
    while not handle.closing:
        handle.connection.check_for_errors()
        time.sleep(WATCH_INTERVAL)


def _release(handle: ConsumerHandle, channel: Channel) -> None:
    """Drop the subscription so the broker stops delivering to a dead consumer."""
    close_quietly(channel, "channel")
    close_quietly(handle.connection, "connection")


def _decode(body: Any) -> str:
    # payloads are opaque: undecodable bytes are replaced, never fatal
    if isinstance(body, bytes):
        return body.decode("utf-8", errors="replace")
    return body


def _run_consumer(
    handle: ConsumerHandle,
    channel: Channel,
    consuming: bool,
    future: Future,
) -> None:
    try:
        if consuming:
            channel.start_consuming(to_tuple=False, auto_decode=False)
            if not handle.closing:
                logger.warning("Consumer on %s was cancelled by the broker", handle.queue)
        _watch_connection(handle)
    except AMQPError as e:
        if handle.closing:
            _settle(future)
            return
        logger.error("Connector consumer on %s failed: %s", handle.queue, e)
        _release(handle, channel)
        _settle(future, error=translate_amqp_error(e))
    except Exception as e:
        logger.exception("Connector consumer on %s crashed", handle.queue)
        _release(handle, channel)
        error = BrokerChannelError(f"Consumer on {handle.queue} stopped: {e}", error_payload(e))
        error.__cause__ = e
        _settle(future, error=error)
    else:
        _settle(future)


def consume_queue(
    connection_factory: BrokerConnectionFactory,
    context: Any,
    connector_id: str,
    connection_setter: Callable[[ConsumerHandle], None],
    message_callback: MessageCallback,
) -> Future:
    """
    Consume a connector's listen queue until the connection is closed.

    Args:
        connection_factory: Factory for the dedicated connection
        context: Opaque value passed back to every ``message_callback`` call
        connector_id: Connector whose listen queue is consumed
        connection_setter: Receives the ConsumerHandle used to stop consuming
        message_callback: Called as ``message_callback(context, text)`` for
            each message, one at a time, in delivery order

    Returns:
        Future that fails with a BrokerError when the connection or channel
        fails, and resolves with None once the handle is closed. A failure to
        start consuming is only logged: the connection stays open and the
        future keeps watching it.
    """
    future: Future = Future()
    queue = util.listen_queue(connection_factory.config.prefix, connector_id)

    try:
        connection = connection_factory.connect()
    except BrokerError as e:
        _settle(future, error=e)
        return future

    logger.info("Starting connector queue consuming")
    handle = ConsumerHandle(connection, queue)
    connection_setter(handle)

    try:
        channel = connection.channel()
    except AMQPError as e:
        logger.error("Failed to open consumer channel for %s: %s", queue, e)
        _settle(future, error=translate_amqp_error(e))
        return future

    def _on_message(message: Message) -> None:
        try:
            body = message.body
            if body is None:
                return
            message_callback(context, _decode(body))
        except Exception:
            logger.exception("Message callback failed for queue %s", queue)

    consuming = True
    try:
        channel.basic.consume(callback=_on_message, queue=queue, no_ack=True)
    except AMQPError as e:
        consuming = False
        logger.error("CONNECTOR_CONSUMER_QUEUE_CONSUME", extra={"error": error_payload(e), "queue": queue})

    # the consumer thread inherits the caller's log context
    thread = threading.Thread(
        target=contextvars.copy_context().run,
        args=(_run_consumer, handle, channel, consuming, future),
        name=f"rmq-consumer-{queue}",
        daemon=True,
    )
    thread.start()
    return future
