import random

from .config import CIRCUIT_LENGTH, DEFAULT_CONFIG
from .encryption_utils import EncryptionUtils
from .errors import CryptoError, EncryptionFailed, InsufficientNodes
from .layer import join_body, join_layer


class CircuitBuilder:
    """Picks a random circuit of relays and wraps a message in one layer per relay."""

    def __init__(self, config=DEFAULT_CONFIG, rng=None, logger=None, circuit_length=CIRCUIT_LENGTH):
        if circuit_length < 1:
            raise ValueError("circuit_length must be at least 1")
        self.config = config
        self.rng = rng or random
        self.circuit_length = circuit_length
        self.logger = logger or (lambda action, msg: None)
        self.last_circuit = []

    def log(self, action, msg):
        self.logger(action, msg)

    def select_circuit(self, nodes):
        """Samples ``circuit_length`` distinct relays, in forward order."""
        nodes = list(nodes)
        if len(nodes) < self.circuit_length:
            raise InsufficientNodes(f"Need {self.circuit_length} relays for a circuit, directory has {len(nodes)}")
        return self.rng.sample(nodes, self.circuit_length)

    def encode_onion(self, message: str, destination_address: int, hops) -> str:
        """
        Wraps ``message`` for the given hops, innermost layer first.

        Each layer encrypts ``address of the next hop + inner payload`` under a
        fresh AES key, and prepends that key encrypted for the hop's RSA key.
        The innermost layer points at ``destination_address``.
        """
        payload = message
        target = destination_address
        try:
            for hop in reversed(hops):
                sym_key = EncryptionUtils.create_random_symmetric_key()
                encrypted_body = EncryptionUtils.sym_encrypt(sym_key, join_body(target, payload))
                encrypted_key = EncryptionUtils.rsa_encrypt(EncryptionUtils.export_sym_key(sym_key), hop.pub_key)
                payload = join_layer(encrypted_key, encrypted_body)
                target = hop.address
        except (CryptoError, ValueError) as e:
            raise EncryptionFailed(f"Could not build onion layer: {e}") from e
        return payload

    def build_onion(self, message: str, destination_address: int, directory):
        """Returns ``(entry relay address, onion payload)`` for a new random circuit."""
        hops = self.select_circuit(directory.list_nodes())
        self.last_circuit = [hop.node_id for hop in hops]
        self.log("CIRCUIT", f"Circuit {' -> '.join(str(i) for i in self.last_circuit)} "
                            f"-> destination {destination_address}")
        onion = self.encode_onion(message, destination_address, hops)
        self.log("CIRCUIT", f"Built {len(hops)}-layer onion of {len(onion)} chars")
        return hops[0].address, onion
