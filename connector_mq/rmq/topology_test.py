"""Tests for connector topology management."""

import unittest
from unittest.mock import Mock, call

from connector_mq.rmq.config import BrokerConfig
from connector_mq.rmq.exceptions import BrokerChannelError
from connector_mq.rmq.topology import TopologyManager


def make_manager(config=None):
    """TopologyManager whose executor runs work on a single mock channel."""
    channel = Mock()
    executor = Mock()
    executor.execute.side_effect = lambda work: work(channel)
    manager = TopologyManager(config or BrokerConfig(queue_type="classic"), executor)
    return manager, executor, channel


class TestRegisterConnectorQueues(unittest.TestCase):
    """Tests for TopologyManager.register_connector_queues."""

    def test_register_declares_and_binds_in_order(self):
        manager, executor, channel = make_manager()
        arguments = {
            "name": "Test",
            "config": {"id": "conn-1", "type": "EXTERNAL_IMPORT", "scope": "external-import"},
            "x-queue-type": "classic",
        }

        manager.register_connector_queues("conn-1", "Test", "EXTERNAL_IMPORT", "external-import")

        executor.execute.assert_called_once()
        self.assertEqual(
            channel.mock_calls,
            [
                call.exchange.declare(exchange="amqp.connector.exchange", exchange_type="direct", durable=True),
                call.exchange.declare(exchange="amqp.worker.exchange", exchange_type="direct", durable=True),
                call.queue.declare(
                    queue="listen_conn-1", durable=True, exclusive=False, auto_delete=False, arguments=arguments
                ),
                call.queue.bind(
                    queue="listen_conn-1", exchange="amqp.connector.exchange", routing_key="listen_routing_conn-1"
                ),
                call.queue.declare(
                    queue="push_conn-1", durable=True, exclusive=False, auto_delete=False, arguments=arguments
                ),
                call.queue.bind(
                    queue="push_conn-1", exchange="amqp.worker.exchange", routing_key="push_routing_conn-1"
                ),
            ],
        )

    def test_register_returns_connector_config(self):
        manager, _, _ = make_manager(BrokerConfig(queue_prefix="octi"))

        connector_config = manager.register_connector_queues(
            "conn-1", "Test", "EXTERNAL_IMPORT", "external-import"
        )

        self.assertEqual(connector_config.listen, "octi_listen_conn-1")
        self.assertEqual(connector_config.push, "octi_push_conn-1")
        self.assertEqual(connector_config.listen_routing, "octi_listen_routing_conn-1")
        self.assertEqual(connector_config.push_routing, "octi_push_routing_conn-1")

    def test_register_twice_returns_same_record(self):
        manager, executor, _ = make_manager()

        first = manager.register_connector_queues("conn-1", "Test", "EXTERNAL_IMPORT", "external-import")
        second = manager.register_connector_queues("conn-1", "Test", "EXTERNAL_IMPORT", "external-import")

        self.assertEqual(first, second)
        self.assertEqual(executor.execute.call_count, 2)

    def test_queue_type_omitted_when_not_configured(self):
        manager, _, _ = make_manager(BrokerConfig(queue_type=None))

        arguments = manager.queue_arguments("conn-1", "Test", "EXTERNAL_IMPORT", "scope")

        self.assertNotIn("x-queue-type", arguments)

    def test_register_failure_aborts_remaining_steps(self):
        manager, _, channel = make_manager()
        channel.queue.bind.side_effect = BrokerChannelError("NOT_FOUND - no exchange")

        with self.assertRaises(BrokerChannelError):
            manager.register_connector_queues("conn-1", "Test", "EXTERNAL_IMPORT", "scope")

        # listen queue declared, push queue never reached
        self.assertEqual(channel.queue.declare.call_count, 1)


class TestUnregister(unittest.TestCase):
    """Tests for connector and exchange deletion."""

    def test_unregister_connector_deletes_both_queues_separately(self):
        manager, executor, channel = make_manager()
        channel.queue.delete.side_effect = [{"message_count": 3}, {"message_count": 0}]

        result = manager.unregister_connector("conn-1")

        self.assertEqual(result, {"listen": {"message_count": 3}, "push": {"message_count": 0}})
        self.assertEqual(executor.execute.call_count, 2)
        self.assertEqual(
            channel.queue.delete.call_args_list,
            [call(queue="listen_conn-1"), call(queue="push_conn-1")],
        )

    def test_unregister_connector_stops_on_first_failure(self):
        manager, executor, channel = make_manager()
        channel.queue.delete.side_effect = BrokerChannelError("boom")

        with self.assertRaises(BrokerChannelError):
            manager.unregister_connector("conn-1")

        self.assertEqual(executor.execute.call_count, 1)

    def test_unregister_exchanges(self):
        manager, executor, channel = make_manager(BrokerConfig(queue_prefix="octi"))

        manager.unregister_exchanges()

        self.assertEqual(executor.execute.call_count, 2)
        self.assertEqual(
            channel.exchange.delete.call_args_list,
            [call(exchange="octi_amqp.connector.exchange"), call(exchange="octi_amqp.worker.exchange")],
        )


if __name__ == "__main__":
    unittest.main()
