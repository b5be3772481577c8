"""RabbitMQ provider with SSL support.

Typer option types bound to environment variables, and the factory turning
them into a BrokerConfig.

Example:
    ```python
    app = typer.Typer()

    @app.callback()
    def setup(ctx: typer.Context, rabbitmq_host: RabbitMQHost = "localhost"):
        ctx.obj = create_broker_config(host=rabbitmq_host)
    ```
"""

import logging
from typing import Annotated, Optional

import typer

from connector_mq.rmq.config import DEFAULT_TIMEOUT, DEFAULT_VHOST, BrokerConfig

logger = logging.getLogger(__name__)

RabbitMQHost = Annotated[str, typer.Option(envvar="RABBITMQ_HOST")]
RabbitMQPort = Annotated[int, typer.Option(envvar="RABBITMQ_PORT")]
RabbitMQUser = Annotated[str, typer.Option(envvar="RABBITMQ_USER")]
RabbitMQPassword = Annotated[str, typer.Option(envvar="RABBITMQ_PASSWORD")]
RabbitMQVHost = Annotated[str, typer.Option(envvar="RABBITMQ_VHOST")]
RabbitMQEnableSSL = Annotated[bool, typer.Option(envvar="RABBITMQ_ENABLE_SSL")]
RabbitMQSSLCA = Annotated[
    Optional[list[str]],
    typer.Option(envvar="RABBITMQ_SSL_CA", help="CA bundle, repeatable"),
]
RabbitMQSSLCert = Annotated[Optional[str], typer.Option(envvar="RABBITMQ_SSL_CERT")]
RabbitMQSSLKey = Annotated[Optional[str], typer.Option(envvar="RABBITMQ_SSL_KEY")]
RabbitMQSSLPfx = Annotated[Optional[str], typer.Option(envvar="RABBITMQ_SSL_PFX")]
RabbitMQSSLPassphrase = Annotated[
    Optional[str], typer.Option(envvar="RABBITMQ_SSL_PASSPHRASE")
]
RabbitMQSSLRejectUnauthorized = Annotated[
    bool,
    typer.Option(
        envvar="RABBITMQ_SSL_REJECT_UNAUTHORIZED",
        help="Verify the broker certificate (disabled by default)",
    ),
]
RabbitMQManagementHost = Annotated[
    Optional[str], typer.Option(envvar="RABBITMQ_MANAGEMENT_HOST")
]
RabbitMQManagementPort = Annotated[int, typer.Option(envvar="RABBITMQ_MANAGEMENT_PORT")]
RabbitMQManagementSSL = Annotated[bool, typer.Option(envvar="RABBITMQ_MANAGEMENT_SSL")]
RabbitMQManagementSSLRejectUnauthorized = Annotated[
    bool,
    typer.Option(envvar="RABBITMQ_MANAGEMENT_SSL_REJECT_UNAUTHORIZED"),
]
RabbitMQQueueType = Annotated[Optional[str], typer.Option(envvar="RABBITMQ_QUEUE_TYPE")]
RabbitMQQueuePrefix = Annotated[Optional[str], typer.Option(envvar="RABBITMQ_QUEUE_PREFIX")]
RabbitMQTimeout = Annotated[float, typer.Option(envvar="RABBITMQ_TIMEOUT")]


def create_broker_config(
    host: str = "localhost",
    port: int = 5672,
    user: str = "guest",
    password: str = "guest",
    vhost: str = DEFAULT_VHOST,
    enable_ssl: bool = False,
    ssl_ca: Optional[list[str]] = None,
    ssl_cert: Optional[str] = None,
    ssl_key: Optional[str] = None,
    ssl_pfx: Optional[str] = None,
    ssl_passphrase: Optional[str] = None,
    ssl_reject_unauthorized: bool = False,
    management_host: Optional[str] = None,
    management_port: int = 15672,
    management_ssl: bool = False,
    management_ssl_reject_unauthorized: bool = False,
    queue_type: Optional[str] = "classic",
    queue_prefix: Optional[str] = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> BrokerConfig:
    """Create the broker configuration from CLI/environment values.

    Empty strings coming from unset environment variables are treated as None.
    """
    logger.debug("Creating RabbitMQ config for host: %s:%s", host, port)

    return BrokerConfig(
        hostname=host,
        port=port,
        username=user,
        password=password,
        vhost=vhost or DEFAULT_VHOST,
        use_ssl=enable_ssl,
        ssl_ca=tuple(ssl_ca or ()),
        ssl_cert=ssl_cert or None,
        ssl_key=ssl_key or None,
        ssl_pfx=ssl_pfx or None,
        ssl_passphrase=ssl_passphrase or None,
        ssl_reject_unauthorized=ssl_reject_unauthorized,
        management_hostname=management_host or None,
        management_port=management_port,
        management_ssl=management_ssl,
        management_ssl_reject_unauthorized=management_ssl_reject_unauthorized,
        queue_type=queue_type or None,
        queue_prefix=queue_prefix or None,
        timeout=timeout,
    )
