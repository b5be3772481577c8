"""
RabbitMQ connection factory.

Builds the broker URI, the TLS options and amqpstorm connections from a
BrokerConfig. Nothing here keeps state between calls: every connection is
fresh and owned by its caller.
"""

import logging
import os
import ssl
import tempfile
from typing import Any, Optional

import amqpstorm
from amqpstorm.exception import AMQPError
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    NoEncryption,
    PrivateFormat,
    pkcs12,
)

from connector_mq.rmq.config import BrokerConfig
from connector_mq.rmq.exceptions import BrokerConnectionError, error_payload

logger = logging.getLogger(__name__)


def _load_pkcs12(context: ssl.SSLContext, path: str, passphrase: Optional[str]) -> None:
    """
    Load a PKCS12 client bundle into an SSL context.

    The ssl module only reads PEM files, so the bundle is decoded and written
    to a private temporary directory for the duration of the load.
    """
    with open(path, "rb") as f:
        data = f.read()
    password = passphrase.encode("utf-8") if passphrase else None
    key, certificate, additional = pkcs12.load_key_and_certificates(data, password)
    if key is None or certificate is None:
        raise ValueError(f"PKCS12 bundle {path} does not contain a key and a certificate")

    with tempfile.TemporaryDirectory() as tmp:
        cert_path = os.path.join(tmp, "client.crt")
        key_path = os.path.join(tmp, "client.key")
        with open(cert_path, "wb") as f:
            f.write(certificate.public_bytes(Encoding.PEM))
            for extra in additional or []:
                f.write(extra.public_bytes(Encoding.PEM))
        with open(key_path, "wb") as f:
            f.write(key.private_bytes(Encoding.PEM, PrivateFormat.PKCS8, NoEncryption()))
        context.load_cert_chain(certfile=cert_path, keyfile=key_path)


def create_ssl_context(config: BrokerConfig) -> ssl.SSLContext:
    """
    Create the SSL context for an amqps connection.

    Args:
        config: Broker configuration carrying the certificate material

    Returns:
        Client SSL context. When ``ssl_reject_unauthorized`` is False the
        context performs no hostname check and no peer verification.
    """
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    if config.ssl_ca:
        for ca_path in config.ssl_ca:
            context.load_verify_locations(cafile=ca_path)
    else:
        context.load_default_certs(purpose=ssl.Purpose.SERVER_AUTH)

    if config.ssl_pfx:
        _load_pkcs12(context, config.ssl_pfx, config.ssl_passphrase)
    elif config.ssl_cert:
        context.load_cert_chain(
            certfile=config.ssl_cert,
            keyfile=config.ssl_key,
            password=config.ssl_passphrase,
        )

    if not config.ssl_reject_unauthorized:
        # check_hostname has to be cleared before verify_mode can drop to CERT_NONE
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
        logger.warning(
            "TLS peer verification disabled for %s, set ssl_reject_unauthorized to enable it",
            config.hostname,
        )
    return context


class BrokerConnectionFactory:
    """Builds connections to the broker described by a BrokerConfig."""

    def __init__(self, config: BrokerConfig) -> None:
        self._config = config

    @property
    def config(self) -> BrokerConfig:
        return self._config

    @property
    def uri(self) -> str:
        """
        Connection URI, without credentials.

        Examples:
            >>> BrokerConnectionFactory(BrokerConfig(hostname="mq", port=5672)).uri
            'amqp://mq:5672'
        """
        scheme = "amqps" if self._config.use_ssl else "amqp"
        return f"{scheme}://{self._config.hostname}:{self._config.port}{self._config.vhost_path}"

    def ssl_options(self) -> Optional[dict[str, Any]]:
        """
        TLS options for amqpstorm, None when TLS is disabled.

        A new context is built on every call so forked workers never share one.
        """
        if not self._config.use_ssl:
            return None
        return {
            "context": create_ssl_context(self._config),
            "server_hostname": self._config.hostname,
        }

    def connection_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for ``amqpstorm.Connection``."""
        return {
            "hostname": self._config.hostname,
            "port": self._config.port,
            "username": self._config.username,
            "password": self._config.password,
            "virtual_host": self._config.vhost,
            "ssl": self._config.use_ssl,
            "ssl_options": self.ssl_options(),
            "timeout": self._config.timeout,
        }

    def connect(self) -> amqpstorm.Connection:
        """
        Open a new connection.

        Returns:
            Open amqpstorm connection owned by the caller

        Raises:
            BrokerConnectionError: If the broker cannot be reached or refuses the login
        """
        try:
            connection = amqpstorm.Connection(**self.connection_kwargs())
        except AMQPError as e:
            logger.error("Failed to connect to RabbitMQ at %s: %s", self.uri, e)
            raise BrokerConnectionError(str(e), error_payload(e)) from e
        logger.debug("RabbitMQ connection opened to %s", self.uri)
        return connection
