"""Tests for the connector queue consumer."""

import unittest
from unittest.mock import Mock, patch

from amqpstorm import Message
from amqpstorm.exception import AMQPChannelError, AMQPConnectionError

from connector_mq.logging import LogContext, clear_context, get_context, set_context
from connector_mq.rmq.config import BrokerConfig
from connector_mq.rmq.exceptions import BrokerChannelError, BrokerConnectionError
from connector_mq.rmq.subscriber import ConsumerHandle, consume_queue

RESULT_TIMEOUT = 5


def make_factory(config=None):
    """Connection factory returning one mock connection with one mock channel."""
    connection = Mock()
    channel = connection.channel.return_value
    factory = Mock()
    factory.config = config or BrokerConfig()
    factory.connect.return_value = connection
    return factory, connection, channel


def deliver(channel, *bodies, then=None):
    """Make start_consuming deliver bodies (or real messages) to the registered callback, then raise ``then``."""

    def _start_consuming(**kwargs):
        on_message = channel.basic.consume.call_args.kwargs["callback"]
        for body in bodies:
            on_message(body if isinstance(body, Message) else Mock(body=body))
        if then is not None:
            raise then

    channel.start_consuming.side_effect = _start_consuming


@patch("connector_mq.rmq.subscriber.WATCH_INTERVAL", 0)
class TestConsumeQueue(unittest.TestCase):
    """Tests for consume_queue."""

    def test_consumes_listen_queue_without_ack(self):
        factory, connection, channel = make_factory(BrokerConfig(queue_prefix="octi"))
        handles = []
        deliver(channel, then=AMQPConnectionError("closed"))

        future = consume_queue(factory, None, "conn-1", handles.append, Mock())
        future.exception(timeout=RESULT_TIMEOUT)

        kwargs = channel.basic.consume.call_args.kwargs
        self.assertEqual(kwargs["queue"], "octi_listen_conn-1")
        self.assertTrue(kwargs["no_ack"])
        self.assertEqual(len(handles), 1)
        self.assertIsInstance(handles[0], ConsumerHandle)
        self.assertIs(handles[0].connection, connection)

    def test_messages_delivered_in_order_with_context(self):
        factory, _, channel = make_factory()
        received = []
        deliver(channel, '{"n":1}', '{"n":2}', '{"n":3}', then=AMQPConnectionError("closed"))

        future = consume_queue(
            factory, "ctx", "conn-1", Mock(), lambda context, text: received.append((context, text))
        )

        with self.assertRaises(BrokerConnectionError):
            future.result(timeout=RESULT_TIMEOUT)
        self.assertEqual(received, [("ctx", '{"n":1}'), ("ctx", '{"n":2}'), ("ctx", '{"n":3}')])

    def test_bytes_bodies_are_decoded_and_empty_ones_skipped(self):
        factory, _, channel = make_factory()
        received = []
        deliver(channel, b'{"type":"test"}', None, then=AMQPConnectionError("closed"))

        future = consume_queue(factory, None, "conn-1", Mock(), lambda _, text: received.append(text))
        future.exception(timeout=RESULT_TIMEOUT)

        self.assertEqual(received, ['{"type":"test"}'])

    def test_callback_failure_does_not_stop_consumption(self):
        factory, _, channel = make_factory()
        received = []

        def callback(_, text):
            if text == "bad":
                raise ValueError("cannot process")
            received.append(text)

        deliver(channel, "bad", "good", then=AMQPConnectionError("closed"))

        with self.assertLogs("connector_mq.rmq.subscriber", level="ERROR"):
            future = consume_queue(factory, None, "conn-1", Mock(), callback)
            future.exception(timeout=RESULT_TIMEOUT)

        self.assertEqual(received, ["good"])

    def test_connect_failure_fails_future_without_handle(self):
        factory, _, _ = make_factory()
        factory.connect.side_effect = BrokerConnectionError("Connection refused")
        setter = Mock()

        future = consume_queue(factory, None, "conn-1", setter, Mock())

        self.assertIsInstance(future.exception(timeout=RESULT_TIMEOUT), BrokerConnectionError)
        setter.assert_not_called()

    def test_channel_failure_fails_future(self):
        factory, connection, _ = make_factory()
        connection.channel.side_effect = AMQPConnectionError("connection reset")
        setter = Mock()

        future = consume_queue(factory, None, "conn-1", setter, Mock())

        self.assertIsInstance(future.exception(timeout=RESULT_TIMEOUT), BrokerConnectionError)
        setter.assert_called_once()

    def test_consume_failure_is_logged_and_connection_watched(self):
        factory, connection, channel = make_factory()
        channel.basic.consume.side_effect = AMQPChannelError("NOT_FOUND - no queue", reply_code=404)
        connection.check_for_errors.side_effect = [None, AMQPConnectionError("connection lost")]

        with self.assertLogs("connector_mq.rmq.subscriber", level="ERROR") as logs:
            future = consume_queue(factory, None, "conn-1", Mock(), Mock())
            error = future.exception(timeout=RESULT_TIMEOUT)

        self.assertIsInstance(error, BrokerConnectionError)
        self.assertIn("CONNECTOR_CONSUMER_QUEUE_CONSUME", [r.getMessage() for r in logs.records])
        channel.start_consuming.assert_not_called()
        self.assertEqual(connection.check_for_errors.call_count, 2)

    def test_closing_handle_resolves_future(self):
        factory, connection, channel = make_factory()
        handles = []
        channel.start_consuming.side_effect = lambda **kwargs: handles[0].close()

        future = consume_queue(factory, None, "conn-1", handles.append, Mock())

        self.assertIsNone(future.result(timeout=RESULT_TIMEOUT))
        self.assertTrue(handles[0].closing)
        connection.close.assert_called_once()

    def test_error_after_close_is_not_a_failure(self):
        factory, _, channel = make_factory()
        handles = []

        def _start_consuming(**kwargs):
            handles[0].close()
            raise AMQPConnectionError("connection closed")

        channel.start_consuming.side_effect = _start_consuming

        future = consume_queue(factory, None, "conn-1", handles.append, Mock())

        self.assertIsNone(future.result(timeout=RESULT_TIMEOUT))

    def test_broker_cancel_keeps_watching_connection(self):
        factory, connection, channel = make_factory()
        connection.check_for_errors.side_effect = AMQPConnectionError("connection lost")

        with self.assertLogs("connector_mq.rmq.subscriber", level="WARNING") as logs:
            future = consume_queue(factory, None, "conn-1", Mock(), Mock())
            error = future.exception(timeout=RESULT_TIMEOUT)

        self.assertIsInstance(error, BrokerConnectionError)
        self.assertTrue(any("cancelled by the broker" in r.getMessage() for r in logs.records))

    def test_consumes_raw_bodies(self):
        factory, _, channel = make_factory()
        deliver(channel, then=AMQPConnectionError("closed"))

        future = consume_queue(factory, None, "conn-1", Mock(), Mock())
        future.exception(timeout=RESULT_TIMEOUT)

        channel.start_consuming.assert_called_once_with(to_tuple=False, auto_decode=False)

    def test_undecodable_body_does_not_stop_consumption(self):
        factory, _, channel = make_factory()
        received = []
        deliver(
            channel,
            Message(Mock(), body=b"\xff\xfe bad", auto_decode=True),
            Message(Mock(), body=b'{"type":"test"}', auto_decode=False),
            then=AMQPConnectionError("closed"),
        )

        future = consume_queue(factory, None, "conn-1", Mock(), lambda _, text: received.append(text))

        self.assertIsInstance(future.exception(timeout=RESULT_TIMEOUT), BrokerConnectionError)
        self.assertEqual(received, ["\ufffd\ufffd bad", '{"type":"test"}'])

    def test_unexpected_error_releases_connection(self):
        factory, connection, channel = make_factory()
        channel.start_consuming.side_effect = RuntimeError("consumer bug")

        with self.assertLogs("connector_mq.rmq.subscriber", level="ERROR"):
            future = consume_queue(factory, None, "conn-1", Mock(), Mock())
            error = future.exception(timeout=RESULT_TIMEOUT)

        self.assertIsInstance(error, BrokerChannelError)
        self.assertIsInstance(error.__cause__, RuntimeError)
        channel.close.assert_called_once()
        connection.close.assert_called_once()

    def test_connection_failure_releases_connection(self):
        factory, connection, channel = make_factory()
        deliver(channel, then=AMQPChannelError("channel closed by broker", reply_code=406))

        future = consume_queue(factory, None, "conn-1", Mock(), Mock())

        self.assertIsInstance(future.exception(timeout=RESULT_TIMEOUT), BrokerChannelError)
        connection.close.assert_called_once()

    def test_callbacks_see_caller_log_context(self):
        factory, _, channel = make_factory()
        set_context(LogContext(connector_id="conn-1", operation="consume"))
        self.addCleanup(clear_context)
        seen = []
        deliver(channel, "x", then=AMQPConnectionError("closed"))

        future = consume_queue(factory, None, "conn-1", Mock(), lambda *_: seen.append(get_context()))
        future.exception(timeout=RESULT_TIMEOUT)

        self.assertEqual(seen[0].connector_id, "conn-1")


class TestConsumerHandle(unittest.TestCase):
    """Tests for ConsumerHandle."""

    def test_close_skips_already_closed_connection(self):
        connection = Mock(is_open=False)
        handle = ConsumerHandle(connection, "listen_conn-1")

        handle.close()

        self.assertTrue(handle.closing)
        connection.close.assert_not_called()


if __name__ == "__main__":
    unittest.main()
