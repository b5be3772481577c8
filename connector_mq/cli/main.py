"""connector-mq command line.

Administrative access to connector queues: register and unregister
connectors, push messages, tail a connector queue and probe the broker.
"""

import json
from dataclasses import dataclass
from typing import Annotated, Literal, Optional

import typer

from connector_mq.cli.rabbitmq import (
    RabbitMQEnableSSL,
    RabbitMQHost,
    RabbitMQManagementHost,
    RabbitMQManagementPort,
    RabbitMQManagementSSL,
    RabbitMQManagementSSLRejectUnauthorized,
    RabbitMQPassword,
    RabbitMQPort,
    RabbitMQQueuePrefix,
    RabbitMQQueueType,
    RabbitMQSSLCA,
    RabbitMQSSLCert,
    RabbitMQSSLKey,
    RabbitMQSSLPassphrase,
    RabbitMQSSLPfx,
    RabbitMQSSLRejectUnauthorized,
    RabbitMQTimeout,
    RabbitMQUser,
    RabbitMQVHost,
    create_broker_config,
)
from connector_mq.logging import configure_logging, get_logger, update_context
from connector_mq.rmq import (
    BrokerConfig,
    BrokerError,
    BrokerUnavailableError,
    ConsumerHandle,
    MessagingEngine,
)

logger = get_logger(__name__)

LogLevel = Annotated[
    Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
    typer.Option(envvar="LOG_LEVEL", help="Logging level"),
]
LogJson = Annotated[bool, typer.Option("--log-json", envvar="LOG_JSON", help="JSON console logs")]
EnableOTLP = Annotated[bool, typer.Option("--log-otlp", envvar="LOG_OTLP", help="Enable OTLP logging")]


@dataclass
class CLIContext:
    """Typed context shared by every command."""

    config: BrokerConfig
    engine: MessagingEngine


app = typer.Typer(help="Connector queue orchestration on RabbitMQ.", no_args_is_help=True)


def _engine(ctx: typer.Context) -> MessagingEngine:
    return ctx.obj.engine


def _fail(error: BrokerError) -> None:
    typer.echo(f"{type(error).__name__}: {error}", err=True)
    if error.data:
        typer.echo(json.dumps(error.data, default=str), err=True)
    raise typer.Exit(code=1)


@app.callback()
def callback(
    ctx: typer.Context,
    rabbitmq_host: RabbitMQHost = "localhost",
    rabbitmq_port: RabbitMQPort = 5672,
    rabbitmq_user: RabbitMQUser = "guest",
    rabbitmq_password: RabbitMQPassword = "guest",
    rabbitmq_vhost: RabbitMQVHost = "/",
    rabbitmq_enable_ssl: RabbitMQEnableSSL = False,
    rabbitmq_ssl_ca: RabbitMQSSLCA = None,
    rabbitmq_ssl_cert: RabbitMQSSLCert = None,
    rabbitmq_ssl_key: RabbitMQSSLKey = None,
    rabbitmq_ssl_pfx: RabbitMQSSLPfx = None,
    rabbitmq_ssl_passphrase: RabbitMQSSLPassphrase = None,
    rabbitmq_ssl_reject_unauthorized: RabbitMQSSLRejectUnauthorized = False,
    rabbitmq_management_host: RabbitMQManagementHost = None,
    rabbitmq_management_port: RabbitMQManagementPort = 15672,
    rabbitmq_management_ssl: RabbitMQManagementSSL = False,
    rabbitmq_management_ssl_reject_unauthorized: RabbitMQManagementSSLRejectUnauthorized = False,
    rabbitmq_queue_type: RabbitMQQueueType = "classic",
    rabbitmq_queue_prefix: RabbitMQQueuePrefix = None,
    rabbitmq_timeout: RabbitMQTimeout = 10.0,
    log_level: LogLevel = "INFO",
    log_json: LogJson = False,
    log_otlp: EnableOTLP = False,
):
    """Configure logging and the broker connection for every command."""
    configure_logging(log_level=log_level, json_format=log_json, enable_otlp=log_otlp)

    config = create_broker_config(
        host=rabbitmq_host,
        port=rabbitmq_port,
        user=rabbitmq_user,
        password=rabbitmq_password,
        vhost=rabbitmq_vhost,
        enable_ssl=rabbitmq_enable_ssl,
        ssl_ca=rabbitmq_ssl_ca,
        ssl_cert=rabbitmq_ssl_cert,
        ssl_key=rabbitmq_ssl_key,
        ssl_pfx=rabbitmq_ssl_pfx,
        ssl_passphrase=rabbitmq_ssl_passphrase,
        ssl_reject_unauthorized=rabbitmq_ssl_reject_unauthorized,
        management_host=rabbitmq_management_host,
        management_port=rabbitmq_management_port,
        management_ssl=rabbitmq_management_ssl,
        management_ssl_reject_unauthorized=rabbitmq_management_ssl_reject_unauthorized,
        queue_type=rabbitmq_queue_type,
        queue_prefix=rabbitmq_queue_prefix,
        timeout=rabbitmq_timeout,
    )
    ctx.obj = CLIContext(config=config, engine=MessagingEngine(config))


@app.command()
def register(
    ctx: typer.Context,
    connector_id: Annotated[str, typer.Argument(help="Connector id")],
    name: Annotated[str, typer.Option(help="Connector name")],
    connector_type: Annotated[str, typer.Option("--type", help="Connector type")],
    scope: Annotated[Optional[str], typer.Option(help="Connector scope")] = None,
):
    """Create the queues of a connector and print its configuration."""
    update_context(connector_id=connector_id, operation="register")
    try:
        connector_config = _engine(ctx).topology.register_connector_queues(
            connector_id, name, connector_type, scope
        )
    except BrokerError as e:
        _fail(e)
    logger.info("Connector %s registered", connector_id)
    typer.echo(json.dumps(connector_config.to_dict(), indent=2))


@app.command()
def unregister(
    ctx: typer.Context,
    connector_id: Annotated[str, typer.Argument(help="Connector id")],
):
    """Delete the listen and push queues of a connector."""
    update_context(connector_id=connector_id, operation="unregister")
    try:
        result = _engine(ctx).topology.unregister_connector(connector_id)
    except BrokerError as e:
        _fail(e)
    logger.info("Connector %s unregistered", connector_id)
    typer.echo(json.dumps(result, default=str))


@app.command("unregister-exchanges")
def unregister_exchanges(
    ctx: typer.Context,
    yes: Annotated[bool, typer.Option("--yes", help="Confirm the deletion")] = False,
):
    """Delete the connector and worker exchanges."""
    if not yes:
        typer.echo("Refusing to delete exchanges without --yes", err=True)
        raise typer.Exit(code=1)
    try:
        _engine(ctx).topology.unregister_exchanges()
    except BrokerError as e:
        _fail(e)
    typer.echo("Exchanges deleted")


@app.command()
def publish(
    ctx: typer.Context,
    connector_id: Annotated[str, typer.Argument(help="Connector id")],
    message: Annotated[str, typer.Argument(help="JSON message")],
):
    """Push a JSON message to a connector's listen queue."""
    try:
        payload = json.loads(message)
    except json.JSONDecodeError as e:
        raise typer.BadParameter(f"message is not valid JSON: {e}") from e
    try:
        _engine(ctx).publisher.push_to_connector(connector_id, payload)
    except BrokerError as e:
        _fail(e)
    typer.echo(f"Message sent to {connector_id}")


@app.command()
def consume(
    ctx: typer.Context,
    connector_id: Annotated[str, typer.Argument(help="Connector id")],
):
    """Print every message delivered to a connector's listen queue."""
    update_context(connector_id=connector_id, operation="consume")
    handles: list[ConsumerHandle] = []

    def _print(_context, text: str) -> None:
        typer.echo(text)

    logger.info("Tailing listen queue of %s", connector_id)
    future = _engine(ctx).consume_queue(None, connector_id, handles.append, _print)
    try:
        future.result()
    except KeyboardInterrupt:
        for handle in handles:
            handle.close()
    except BrokerError as e:
        _fail(e)


@app.command()
def health(ctx: typer.Context):
    """Check that the broker accepts declarations."""
    try:
        _engine(ctx).probe.is_alive()
    except BrokerUnavailableError as e:
        _fail(e)
    typer.echo("RabbitMQ is alive")


@app.command()
def metrics(ctx: typer.Context):
    """Print the broker overview and the connector queues."""
    try:
        result = _engine(ctx).probe.metrics()
    except BrokerError as e:
        _fail(e)
    typer.echo(json.dumps(result, indent=2, default=str))


@app.command()
def version(ctx: typer.Context):
    """Print the broker version, or Disconnected."""
    typer.echo(_engine(ctx).probe.get_version())


def main():
    app()


if __name__ == "__main__":
    main()
