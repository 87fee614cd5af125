from .config import DEFAULT_CONFIG
from .directory import NodeDirectory
from .node import Node, require


class Registry(Node):
    """HTTP front of a NodeDirectory: relays register here, senders list from here."""

    def __init__(self, config=DEFAULT_CONFIG, logger=None):
        super().__init__("Registry", host=config.host, port=config.registry_port, logger=logger)
        self.directory = NodeDirectory(config)

    def routes(self):
        routes = super().routes()
        routes.update({
            ("POST", "/registerNode"): self._register_node,
            ("GET", "/getNodeRegistry"): self._get_node_registry,
        })
        return routes

    def _register_node(self, body):
        identity = self.directory.register(require(body, "nodeId", int), require(body, "pubKey", str))
        self.log("REGISTER", f"Node {identity.node_id} registered at port {identity.address}")
        return "success"

    def _get_node_registry(self, body):
        return {"nodes": [n.to_json() for n in self.directory.list_nodes()]}
