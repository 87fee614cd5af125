import threading

import requests

from .config import DEFAULT_CONFIG
from .errors import DirectoryUnavailable


class NodeIdentity:
    """A relay as published in the directory: id, public key and listening address."""

    __slots__ = ("node_id", "pub_key", "address")

    def __init__(self, node_id: int, pub_key: str, address: int):
        self.node_id = node_id
        self.pub_key = pub_key
        self.address = address

    def __repr__(self):
        return f"NodeIdentity(node_id={self.node_id}, address={self.address})"

    def __eq__(self, other):
        if not isinstance(other, NodeIdentity):
            return NotImplemented
        return (self.node_id, self.pub_key, self.address) == (other.node_id, other.pub_key, other.address)

    def __hash__(self):
        return hash((self.node_id, self.pub_key, self.address))

    def to_json(self):
        return {"nodeId": self.node_id, "pubKey": self.pub_key}


class NodeDirectory:
    """In-memory map of node id to identity, safe to share between request threads."""

    def __init__(self, config=DEFAULT_CONFIG):
        self.config = config
        self._nodes = {}
        self._lock = threading.Lock()

    def register(self, node_id: int, pub_key: str) -> NodeIdentity:
        """Adds a node. Registering the same id again must carry the same key."""
        if not isinstance(node_id, int) or isinstance(node_id, bool) or node_id < 0:
            raise ValueError(f"Invalid node id {node_id!r}")
        if not isinstance(pub_key, str) or not pub_key:
            raise ValueError(f"Invalid public key for node {node_id}")
        with self._lock:
            existing = self._nodes.get(node_id)
            if existing is not None:
                if existing.pub_key != pub_key:
                    raise ValueError(f"Node {node_id} is already registered with another key")
                return existing
            identity = NodeIdentity(node_id, pub_key, self.config.router_address(node_id))
            self._nodes[node_id] = identity
            return identity

    def get(self, node_id: int):
        with self._lock:
            return self._nodes.get(node_id)

    def list_nodes(self):
        with self._lock:
            return list(self._nodes.values())

    def __len__(self):
        with self._lock:
            return len(self._nodes)


class RegistryClient:
    """Directory backed by the HTTP registry service."""

    def __init__(self, config=DEFAULT_CONFIG, timeout=None):
        self.config = config
        self.timeout = timeout or config.forward_timeout

    def register(self, node_id: int, pub_key: str):
        try:
            resp = requests.post(self.config.registry_url("/registerNode"),
                                 json={"nodeId": node_id, "pubKey": pub_key}, timeout=self.timeout)
            resp.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise DirectoryUnavailable(f"Could not register node {node_id}: {e}") from e

    def list_nodes(self):
        try:
            resp = requests.get(self.config.registry_url("/getNodeRegistry"), timeout=self.timeout)
            resp.raise_for_status()
            entries = resp.json()["nodes"]
            return [NodeIdentity(int(n["nodeId"]), n["pubKey"], self.config.router_address(int(n["nodeId"])))
                    for n in entries]
        except requests.exceptions.RequestException as e:
            raise DirectoryUnavailable(f"Registry unreachable: {e}") from e
        except (ValueError, KeyError, TypeError) as e:
            raise DirectoryUnavailable(f"Registry returned an invalid node list: {e}") from e
