import json
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from urllib.parse import urlparse

from .config import DEFAULT_CONFIG, MAX_BODY_SIZE
from .directory import RegistryClient
from .encryption_utils import EncryptionUtils
from .errors import DirectoryUnavailable, ForwardingFailed, OnionError, RequestTooLarge
from .logger import make_logger
from .peeler import RelayPeeler
from .transport import HttpTransport


class _RequestHandler(BaseHTTPRequestHandler):
    # Routes every request to the Node that owns the server
    def do_GET(self):
        self.server.node.handle_request("GET", self)

    def do_POST(self):
        self.server.node.handle_request("POST", self)

    def log_message(self, format, *args):
        self.server.node.log("HTTP", format % args)


class Node:
    """An HTTP service of the overlay: registry, onion router or user."""

    max_body_size = MAX_BODY_SIZE

    def __init__(self, name, host='127.0.0.1', port=4000, logger=None):
        self.name = name
        self.host = host
        self.port = port
        self.address = f"{host}:{port}"
        self.logger = logger or make_logger(self.address)
        self.server = ThreadingHTTPServer((host, port), _RequestHandler)
        self.server.node = self
        self._thread = None

    def log(self, action, msg):
        """Helper method for logging."""
        self.logger(action, msg)

    def routes(self):
        return {("GET", "/status"): lambda body: "live"}

    def start(self):
        """Starts serving requests on a daemon thread."""
        self.log("START", f"{self.name} listening on {self.host}:{self.port}")
        self._thread = threading.Thread(target=self.server.serve_forever, daemon=True)
        self._thread.start()

    def stop(self):
        if self._thread is not None:
            self.server.shutdown()
            self._thread.join()
            self._thread = None
        self.server.server_close()
        self.log("STOP", f"{self.name} stopped")

    def handle_request(self, method, handler):
        path = urlparse(handler.path).path
        route = self.routes().get((method, path))
        if route is None:
            self._respond(handler, 404, {"error": f"No route for {method} {path}"})
            return
        try:
            body = self._read_body(handler) if method == "POST" else None
            result = route(body)
        except OnionError as e:
            self.log("REQUEST_ERROR", f"{method} {path}: {type(e).__name__} - {e}")
            self._respond(handler, e.http_status, {"error": e.public_message or str(e), "type": type(e).__name__})
            return
        except (ValueError, KeyError, TypeError) as e:
            self.log("REQUEST_ERROR", f"{method} {path}: bad request - {e}")
            self._respond(handler, 400, {"error": str(e)})
            return
        except Exception as e:
            self.log("REQUEST_ERROR", f"{method} {path}: {type(e).__name__} - {e}")
            self._respond(handler, 500, {"error": "internal error"})
            return
        self._respond(handler, 200, result)

    def _read_body(self, handler):
        length = int(handler.headers.get("Content-Length") or 0)
        if length < 0:
            raise ValueError("Invalid Content-Length")
        if length > self.max_body_size:
            # Answer before reading, the connection is closed after the reply
            raise RequestTooLarge(f"Body of {length} bytes is over the {self.max_body_size}-byte limit")
        raw = handler.rfile.read(length) if length else b""
        body = json.loads(raw or b"{}")
        if not isinstance(body, dict):
            raise ValueError("Request body must be a JSON object")
        return body

    @staticmethod
    def _respond(handler, status, result):
        if isinstance(result, str):
            data = result.encode("utf-8")
            content_type = "text/plain; charset=utf-8"
        else:
            data = json.dumps(result).encode("utf-8")
            content_type = "application/json"
        handler.send_response(status)
        handler.send_header("Content-Type", content_type)
        handler.send_header("Content-Length", str(len(data)))
        handler.end_headers()
        handler.wfile.write(data)


def require(body, key, kind):
    """Returns ``body[key]`` if it has the expected type, else raises ValueError."""
    value = body.get(key)
    if not isinstance(value, kind) or isinstance(value, bool):
        raise ValueError(f"Field '{key}' must be {kind.__name__}")
    return value


class OnionRouter(Node):
    """A relay: peels one layer off every incoming onion and forwards the rest."""

    def __init__(self, node_id, config=DEFAULT_CONFIG, logger=None, transport=None, registry=None):
        super().__init__(f"Onion router {node_id}", host=config.host,
                         port=config.router_address(node_id), logger=logger)
        self.node_id = node_id
        self.config = config
        self.public_key, self.private_key = EncryptionUtils.generate_rsa_key_pair()
        self.pub_key = EncryptionUtils.export_public_key(self.public_key)
        self.peeler = RelayPeeler(self.private_key, transport or HttpTransport(config), logger=self.log)
        self.registry = registry or RegistryClient(config)
        self._forwards = set()
        self._forwards_lock = threading.Lock()

    @property
    def state(self):
        return self.peeler.state

    def start(self):
        """Starts listening, then publishes this relay's key to the registry."""
        super().start()
        try:
            self.registry.register(self.node_id, self.pub_key)
        except DirectoryUnavailable as e:
            self.log("REGISTER_ERROR", str(e))
            self.stop()
            raise
        self.log("REGISTER", f"Registered node {self.node_id} with the registry")

    def routes(self):
        routes = super().routes()
        routes.update({
            ("GET", "/getLastReceivedEncryptedMessage"): lambda body: {"result": self.state.last_received_encrypted},
            ("GET", "/getLastReceivedDecryptedMessage"): lambda body: {"result": self.state.last_received_decrypted},
            ("GET", "/getLastMessageDestination"): lambda body: {"result": self.state.last_destination},
            ("GET", "/getPrivateKey"): lambda body: {"result": EncryptionUtils.export_private_key(self.private_key)},
            ("POST", "/message"): self._receive_message,
        })
        return routes

    def _receive_message(self, body):
        payload = require(body, "message", str)
        peeled = self.peeler.peel(payload)
        # Accept now, the next hop is reached from another thread
        thread = threading.Thread(target=self._forward, args=(peeled,), daemon=True)
        with self._forwards_lock:
            self._forwards.add(thread)
        thread.start()
        return "success"

    def _forward(self, peeled):
        try:
            self.peeler.forward(peeled)
        except ForwardingFailed as e:
            self.log("FORWARD_ERROR", str(e))
        finally:
            with self._forwards_lock:
                self._forwards.discard(threading.current_thread())

    def stop(self):
        """Stops listening, then waits for forwards already in flight."""
        super().stop()
        with self._forwards_lock:
            pending = list(self._forwards)
        for thread in pending:
            # Each forward is bounded by the transport timeout
            thread.join(self.config.forward_timeout + 1)
