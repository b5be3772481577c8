"""
RabbitMQ configuration dataclasses.

This module provides the broker endpoint configuration, the queue and binding
declarations used by the topology manager, and the connector configuration
record handed out to connectors.
"""

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Optional

DEFAULT_VHOST = "/"
DEFAULT_TIMEOUT = 10


class ExchangeType(StrEnum):
    """AMQP exchange types used by this library."""
    DIRECT = "direct"


class InternalQueue(StrEnum):
    """Identifiers of the internal worker queues reachable through the worker exchange."""
    SYNC = "sync"
    PLAYBOOK = "playbook"


@dataclass(frozen=True)
class BrokerConfig:
    """
    Broker endpoint configuration.

    Built once at startup and passed to every component. TLS peer
    verification is opt-in: with ``ssl_reject_unauthorized`` left to False
    the client accepts any server certificate.

    Attributes:
        hostname: AMQP host
        port: AMQP port (usually 5672, or 5671 for TLS)
        username: Broker username, also used for the management API
        password: Broker password, also used for the management API
        vhost: Virtual host
        use_ssl: Connect with amqps
        ssl_ca: CA bundle file paths trusted for the AMQP connection
        ssl_cert: Client certificate file (PEM)
        ssl_key: Client private key file (PEM)
        ssl_pfx: Client PKCS12 bundle, used instead of cert/key
        ssl_passphrase: Passphrase of the private key or PKCS12 bundle
        ssl_reject_unauthorized: Verify the broker certificate and hostname
        management_hostname: Management API host, defaults to hostname
        management_port: Management API port
        management_ssl: Use https for the management API
        management_ssl_reject_unauthorized: Verify the management certificate
        queue_type: Value of the x-queue-type argument, omitted when None
        queue_prefix: Namespace for every exchange, queue and routing key
        timeout: Seconds to wait on any broker round trip
    """
    hostname: str = "localhost"
    port: int = 5672
    username: str = "guest"
    password: str = "guest"
    vhost: str = DEFAULT_VHOST
    use_ssl: bool = False
    ssl_ca: tuple[str, ...] = ()
    ssl_cert: Optional[str] = None
    ssl_key: Optional[str] = None
    ssl_pfx: Optional[str] = None
    ssl_passphrase: Optional[str] = None
    ssl_reject_unauthorized: bool = False
    management_hostname: Optional[str] = None
    management_port: int = 15672
    management_ssl: bool = False
    management_ssl_reject_unauthorized: bool = False
    queue_type: Optional[str] = None
    queue_prefix: Optional[str] = None
    timeout: float = DEFAULT_TIMEOUT

    @property
    def vhost_path(self) -> str:
        """Path suffix for the vhost, empty for the default vhost."""
        if self.vhost == DEFAULT_VHOST:
            return ""
        return f"/{self.vhost}"

    @property
    def prefix(self) -> str:
        """Effective name prefix, ``<queue_prefix>_`` or an empty string."""
        if not self.queue_prefix:
            return ""
        return f"{self.queue_prefix}_"

    @property
    def management_host(self) -> str:
        return self.management_hostname or self.hostname


@dataclass
class QueueConfig:
    """
    Configuration for RabbitMQ queues.

    Attributes:
        name: Queue name
        durable: Queue survives broker restart
        exclusive: Queue can only be used by one connection
        auto_delete: Queue is deleted when last consumer unsubscribes
        arguments: Broker-side arguments, informational except for x-* keys
    """
    name: str
    durable: bool = True
    exclusive: bool = False
    auto_delete: bool = False
    arguments: dict[str, Any] = field(default_factory=dict)


@dataclass
class BindingConfig:
    """
    Binding of a queue to a direct exchange.

    Attributes:
        exchange: Exchange name
        routing_key: Routing key selecting the queue
    """
    exchange: str
    routing_key: str


@dataclass(frozen=True)
class ConnectionInfo:
    """Connection parameters handed out to connectors."""
    host: str
    vhost: str
    use_ssl: bool
    port: int
    user: str
    password: str

    @classmethod
    def from_broker_config(cls, config: BrokerConfig) -> "ConnectionInfo":
        return cls(
            host=config.hostname,
            vhost=config.vhost,
            use_ssl=config.use_ssl,
            port=config.port,
            user=config.username,
            password=config.password,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "host": self.host,
            "vhost": self.vhost,
            "use_ssl": self.use_ssl,
            "port": self.port,
            "user": self.user,
            "pass": self.password,
        }


@dataclass(frozen=True)
class ConnectorConfig:
    """
    Connector configuration record.

    This is the contract connectors and workers use to reach their queues:
    they consume ``listen`` and publish to ``push_exchange`` with
    ``push_routing``.
    """
    connection: ConnectionInfo
    push: str
    push_routing: str
    push_exchange: str
    listen: str
    listen_routing: str
    listen_exchange: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "connection": self.connection.to_dict(),
            "push": self.push,
            "push_routing": self.push_routing,
            "push_exchange": self.push_exchange,
            "listen": self.listen,
            "listen_routing": self.listen_routing,
            "listen_exchange": self.listen_exchange,
        }
