"""Connector messaging orchestration on RabbitMQ."""

__version__ = "0.1.0"
