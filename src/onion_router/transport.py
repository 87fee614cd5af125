import requests

from .config import DEFAULT_CONFIG
from .errors import ForwardingFailed


class HttpTransport:
    """Delivers a payload to the ``/message`` route of the node listening on ``address``."""

    def __init__(self, config=DEFAULT_CONFIG):
        self.config = config

    def send(self, address: int, payload: str):
        url = self.config.url(address, "/message")
        try:
            resp = requests.post(url, json={"message": payload}, timeout=self.config.forward_timeout)
            resp.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise ForwardingFailed(f"Delivery to {url} failed: {e}") from e
