import http.client
import time
import unittest

import requests

from onion_router.circuit import CircuitBuilder
from onion_router.config import MAX_BODY_SIZE
from onion_router.directory import NodeIdentity
from onion_router.encryption_utils import EncryptionUtils
from onion_router.errors import ForwardingFailed, InsufficientNodes
from onion_router.layer import format_hop_address, split_layer
from onion_router.network import launch_network, local_config
from onion_router.node import OnionRouter


def wait_for(predicate, timeout=10.0):
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return True
        time.sleep(0.05)
    return predicate()


class TestNetworkDelivery(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.config = local_config(nb_nodes=5, nb_users=2)
        cls.network = launch_network(5, 2, cls.config)

    @classmethod
    def tearDownClass(cls):
        cls.network.stop()

    def get(self, address, path):
        resp = requests.get(self.config.url(address, path), timeout=5)
        resp.raise_for_status()
        return resp.json()["result"]

    def test_all_nodes_live_and_registered(self):
        for node in [self.network.registry, *self.network.routers, *self.network.users]:
            resp = requests.get(self.config.url(node.port, "/status"), timeout=5)
            self.assertEqual(resp.text, "live")
        self.assertEqual(sorted(n.node_id for n in self.network.registry.directory.list_nodes()),
                         [0, 1, 2, 3, 4])

    def test_message_reaches_destination(self):
        sender, recipient = self.network.user(0), self.network.user(1)
        sender.send_message("hello", 1)
        self.assertTrue(wait_for(lambda: recipient.last_received_message == "hello"))
        self.assertEqual(sender.last_sent_message, "hello")

        circuit = sender.last_circuit
        self.assertEqual(len(circuit), 3)
        self.assertEqual(len(set(circuit)), 3)

        entry, middle, exit_ = (self.network.router(i) for i in circuit)
        self.assertEqual(entry.state.last_destination, self.config.router_address(middle.node_id))
        self.assertEqual(middle.state.last_destination, self.config.router_address(exit_.node_id))
        self.assertEqual(exit_.state.last_destination, self.config.user_address(1))
        self.assertEqual(exit_.state.last_received_decrypted, "hello")
        self.assertEqual(middle.state.last_received_decrypted, exit_.state.last_received_encrypted)
        self.assertNotIn("hello", entry.state.last_received_encrypted)

    def test_http_routes(self):
        resp = requests.post(self.config.url(self.config.user_address(1), "/sendMessage"),
                             json={"message": "over http", "destinationUserId": 0}, timeout=10)
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.text, "success")
        self.assertTrue(wait_for(lambda: self.get(self.config.user_address(0), "/getLastReceivedMessage") == "over http"))
        self.assertEqual(self.get(self.config.user_address(1), "/getLastSentMessage"), "over http")

        circuit = self.get(self.config.user_address(1), "/getLastCircuit")
        self.assertEqual(len(set(circuit)), 3)
        exit_address = self.config.router_address(circuit[-1])
        self.assertEqual(self.get(exit_address, "/getLastReceivedDecryptedMessage"), "over http")
        self.assertEqual(self.get(exit_address, "/getLastMessageDestination"), self.config.user_address(0))
        self.assertIsNotNone(self.get(exit_address, "/getLastReceivedEncryptedMessage"))

    def test_private_key_route(self):
        router = self.network.router(0)
        exported = self.get(router.port, "/getPrivateKey")
        private_key = EncryptionUtils.import_private_key(exported)
        data = EncryptionUtils.to_base64(b"check")
        self.assertEqual(EncryptionUtils.rsa_decrypt(EncryptionUtils.rsa_encrypt(data, router.pub_key), private_key), data)

    def test_relay_rejects_bad_payload(self):
        address = self.config.router_address(2)
        resp = requests.post(self.config.url(address, "/message"), json={"message": "garbage"}, timeout=5)
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["type"], "MalformedPayload")

        resp = requests.post(self.config.url(address, "/message"), json={"message": "A" * 400}, timeout=5)
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["type"], "DecryptionFailed")

        resp = requests.post(self.config.url(address, "/message"), json={}, timeout=5)
        self.assertEqual(resp.status_code, 400)

        resp = requests.get(self.config.url(address, "/status"), timeout=5)
        self.assertEqual(resp.text, "live")

    def test_tampered_onion_reveals_nothing(self):
        routers = [self.network.router(i) for i in (0, 1, 2)]
        hops = [NodeIdentity(r.node_id, r.pub_key, r.port) for r in routers]
        onion = CircuitBuilder(self.config).encode_onion("hello", self.config.user_address(1), hops)

        # Flip the first IV byte so the decrypted address starts with 'X' instead of '0'
        segment, body = split_layer(onion)
        raw = EncryptionUtils.from_base64(body)
        raw = bytes([raw[0] ^ (ord("0") ^ ord("X"))]) + raw[1:]
        tampered = segment + EncryptionUtils.to_base64(raw)

        resp = requests.post(self.config.url(routers[0].port, "/message"), json={"message": tampered}, timeout=5)
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["type"], "DecryptionFailed")
        next_hop = format_hop_address(routers[1].port)
        self.assertNotIn(next_hop[1:], resp.text)
        self.assertNotIn(str(routers[1].port), resp.text)
        self.assertIsNone(routers[0].state.last_destination)

    def test_oversized_body_is_refused(self):
        address = self.config.router_address(1)
        conn = http.client.HTTPConnection(self.config.host, address, timeout=5)
        try:
            conn.putrequest("POST", "/message")
            conn.putheader("Content-Type", "application/json")
            conn.putheader("Content-Length", str(MAX_BODY_SIZE + 1))
            conn.endheaders()
            resp = conn.getresponse()
            self.assertEqual(resp.status, 413)
            self.assertEqual(resp.getheader("Content-Type"), "application/json")
            resp.read()
        finally:
            conn.close()
        resp = requests.get(self.config.url(address, "/status"), timeout=5)
        self.assertEqual(resp.text, "live")

    def test_unreachable_destination_is_silent(self):
        # The exit relay cannot reach user 9, the sender still gets success
        sender = self.network.user(0)
        sender.send_message("nobody home", 9)
        exit_ = self.network.router(sender.last_circuit[-1])
        self.assertTrue(wait_for(lambda: exit_.state.last_received_decrypted == "nobody home"))
        self.assertEqual(exit_.state.last_destination, self.config.user_address(9))


class TestSmallNetwork(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.config = local_config(nb_nodes=2, nb_users=2)
        cls.network = launch_network(2, 2, cls.config)

    @classmethod
    def tearDownClass(cls):
        cls.network.stop()

    def test_two_relays_are_not_enough(self):
        with self.assertRaises(InsufficientNodes):
            self.network.user(0).send_message("hello", 1)
        self.assertIsNone(self.network.user(0).last_sent_message)
        for router in self.network.routers:
            self.assertIsNone(router.state.last_received_encrypted)

        resp = requests.post(self.config.url(self.config.user_address(0), "/sendMessage"),
                             json={"message": "hello", "destinationUserId": 1}, timeout=5)
        self.assertEqual(resp.status_code, 409)
        self.assertEqual(resp.json()["type"], "InsufficientNodes")


class SlowTransport:
    def __init__(self, delay):
        self.delay = delay
        self.sent = []

    def send(self, address, payload):
        time.sleep(self.delay)
        self.sent.append((address, payload))


class StubRegistry:
    def register(self, node_id, pub_key):
        pass


class TestRouterStop(unittest.TestCase):
    def test_stop_waits_for_forwards_in_flight(self):
        config = local_config(nb_nodes=1, nb_users=0)
        transport = SlowTransport(0.5)
        router = OnionRouter(0, config, transport=transport, registry=StubRegistry())
        router.start()
        try:
            hops = [NodeIdentity(0, router.pub_key, router.port)]
            onion = CircuitBuilder(config, circuit_length=1).encode_onion("late", 3001, hops)
            resp = requests.post(config.url(router.port, "/message"), json={"message": onion}, timeout=5)
            self.assertEqual(resp.status_code, 200)
        finally:
            router.stop()
        self.assertEqual(transport.sent, [(3001, "late")])


class TestEntryUnreachable(unittest.TestCase):
    def test_sender_learns_entry_failure(self):
        config = local_config(nb_nodes=3, nb_users=1)
        network = launch_network(3, 1, config)
        try:
            sender = network.user(0)
            for router in network.routers:
                router.stop()
            with self.assertRaises(ForwardingFailed):
                sender.send_message("hello", 0)
            self.assertIsNone(sender.last_sent_message)
        finally:
            network.users[0].stop()
            network.registry.stop()


if __name__ == '__main__':
    unittest.main()
