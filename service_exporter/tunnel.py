"""ngrok tunnel client built on pyngrok."""
import logging

from pyngrok import ngrok
from pyngrok.conf import PyngrokConfig
from pyngrok.exception import PyngrokError

from service_exporter.errors import ConfigError, OperationCancelled, UpstreamUnavailable
from service_exporter.orchestrator import check_cancelled

logger = logging.getLogger(__name__)


class NgrokClient:
    """
    Opens public HTTP tunnels to local ports.

    Args:
        auth_token: ngrok auth token

    Raises:
        ConfigError: If the auth token is empty
    """

    def __init__(self, auth_token):
        if not auth_token or not auth_token.strip():
            raise ConfigError("ngrok auth token is required")
        self.pyngrok_config = PyngrokConfig(auth_token=auth_token.strip())

    def start_tunnel(self, local_port, cancel=None):
        """
        Open an HTTP tunnel to ``localhost:<local_port>``.

        Returns:
            tuple: (public_url, close) where ``close()`` disconnects the tunnel
        """
        check_cancelled(cancel, "tunnel creation")
        try:
            tunnel = ngrok.connect(local_port, "http", pyngrok_config=self.pyngrok_config)
        except PyngrokError as e:
            raise UpstreamUnavailable(f"failed to create tunnel: {e}") from e

        public_url = tunnel.public_url

        def close():
            ngrok.disconnect(public_url, pyngrok_config=self.pyngrok_config)

        if cancel is not None and cancel.is_set():
            close()
            raise OperationCancelled("tunnel creation cancelled")
        return public_url, close

    def shutdown(self):
        """Stop the ngrok agent process started by pyngrok."""
        try:
            ngrok.kill(pyngrok_config=self.pyngrok_config)
        except PyngrokError as e:
            logger.warning(f"✗ Failed to stop ngrok agent: {e}")
