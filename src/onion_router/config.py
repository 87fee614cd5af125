import math
import os

HOST = os.environ.get("ONION_HOST", "127.0.0.1")
REGISTRY_PORT = int(os.environ.get("ONION_REGISTRY_PORT", 8080))
BASE_ONION_ROUTER_PORT = int(os.environ.get("ONION_BASE_ROUTER_PORT", 4000))
BASE_USER_PORT = int(os.environ.get("ONION_BASE_USER_PORT", 3000))

# Seconds a relay or user waits for the next hop to accept a message
FORWARD_TIMEOUT = 10.0

# Largest request body a node will read, in bytes
MAX_BODY_SIZE = 1024 * 1024

CIRCUIT_LENGTH = 3

RSA_KEY_SIZE = 2048
SYM_KEY_SIZE = 32
IV_SIZE = 16

HOP_ADDRESS_WIDTH = 10
# Base64 length of one RSA ciphertext block (344 for a 2048-bit key)
ENCRYPTED_KEY_WIDTH = 4 * math.ceil((RSA_KEY_SIZE // 8) / 3)


class NetworkConfig:
    """Where every node of the overlay listens."""

    def __init__(self, host=HOST, registry_port=REGISTRY_PORT,
                 base_onion_router_port=BASE_ONION_ROUTER_PORT,
                 base_user_port=BASE_USER_PORT, forward_timeout=FORWARD_TIMEOUT):
        self.host = host
        self.registry_port = registry_port
        self.base_onion_router_port = base_onion_router_port
        self.base_user_port = base_user_port
        self.forward_timeout = forward_timeout

    def __repr__(self):
        return (f"NetworkConfig(host={self.host!r}, registry_port={self.registry_port}, "
                f"base_onion_router_port={self.base_onion_router_port}, "
                f"base_user_port={self.base_user_port})")

    def router_address(self, node_id: int) -> int:
        return self.base_onion_router_port + node_id

    def user_address(self, user_id: int) -> int:
        return self.base_user_port + user_id

    def url(self, address: int, path: str) -> str:
        return f"http://{self.host}:{address}{path}"

    def registry_url(self, path: str) -> str:
        return self.url(self.registry_port, path)


DEFAULT_CONFIG = NetworkConfig()
