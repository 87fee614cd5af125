from .circuit import CircuitBuilder
from .config import DEFAULT_CONFIG
from .directory import RegistryClient
from .node import Node, require
from .transport import HttpTransport


class User(Node):
    """An endpoint of the overlay: sends onions into a circuit and receives plaintext."""

    def __init__(self, user_id, config=DEFAULT_CONFIG, logger=None, transport=None, directory=None, rng=None):
        super().__init__(f"User {user_id}", host=config.host, port=config.user_address(user_id), logger=logger)
        self.user_id = user_id
        self.config = config
        self.transport = transport or HttpTransport(config)
        self.directory = directory or RegistryClient(config)
        self.builder = CircuitBuilder(config, rng=rng, logger=self.log)
        self.last_received_message = None
        self.last_sent_message = None

    @property
    def last_circuit(self):
        return self.builder.last_circuit

    def routes(self):
        routes = super().routes()
        routes.update({
            ("GET", "/getLastReceivedMessage"): lambda body: {"result": self.last_received_message},
            ("GET", "/getLastSentMessage"): lambda body: {"result": self.last_sent_message},
            ("GET", "/getLastCircuit"): lambda body: {"result": self.last_circuit},
            ("POST", "/message"): self._receive_message,
            ("POST", "/sendMessage"): self._send_message,
        })
        return routes

    def send_message(self, message: str, destination_user_id: int):
        """
        Sends ``message`` to a user through a fresh random circuit.

        Returns once the entry relay has accepted the onion. Nothing tells the
        sender whether the message reached its destination.
        """
        destination = self.config.user_address(destination_user_id)
        entry, onion = self.builder.build_onion(message, destination, self.directory)
        self.log("SEND", f"Sending onion for user {destination_user_id} to entry relay {entry}")
        self.transport.send(entry, onion)
        self.last_sent_message = message

    def _receive_message(self, body):
        self.last_received_message = require(body, "message", str)
        self.log("RECEIVE", f"Received message: {self.last_received_message}")
        return "success"

    def _send_message(self, body):
        self.send_message(require(body, "message", str), require(body, "destinationUserId", int))
        return "success"
