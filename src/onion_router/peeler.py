from collections import namedtuple
from enum import Enum

from .encryption_utils import EncryptionUtils
from .errors import CryptoError, DecryptionFailed, ForwardingFailed, MalformedPayload
from .layer import split_body, split_layer

PeeledLayer = namedtuple("PeeledLayer", ["destination", "payload"])


class RelayStatus(Enum):
    IDLE = "idle"
    PROCESSING = "processing"
    FORWARDED = "forwarded"
    FAILED = "failed"


# What handle_incoming reports for a message that was peeled
class Outcome(Enum):
    FORWARDED = "forwarded"
    FAILED = "failed"


class RelayState:
    """Diagnostics of the last message a relay saw. Last write wins."""

    def __init__(self):
        self.last_received_encrypted = None
        self.last_received_decrypted = None
        self.last_destination = None
        self.status = RelayStatus.IDLE

    def received(self, payload):
        self.last_received_encrypted = payload
        self.last_received_decrypted = None
        self.last_destination = None
        self.status = RelayStatus.PROCESSING


class RelayPeeler:
    """Strips exactly one onion layer with the relay's private key and forwards the rest."""

    def __init__(self, private_key, transport, logger=None):
        self.private_key = private_key
        self.transport = transport
        self.logger = logger or (lambda action, msg: None)
        self.state = RelayState()

    def log(self, action, msg):
        self.logger(action, msg)

    def peel(self, payload: str) -> PeeledLayer:
        """
        Removes this relay's layer from ``payload``.

        The relay cannot tell whether the remainder is another onion or the
        final plaintext; either way it goes to the decoded address.
        """
        self.state.received(payload)
        try:
            encrypted_key, encrypted_body = split_layer(payload)
            try:
                sym_key = EncryptionUtils.rsa_decrypt(encrypted_key, self.private_key)
            except CryptoError as e:
                raise DecryptionFailed("Key segment is not encrypted for this relay") from e
            try:
                body = EncryptionUtils.sym_decrypt(sym_key, encrypted_body)
            except CryptoError as e:
                raise DecryptionFailed("Layer body does not decrypt") from e
            try:
                destination, remainder = split_body(body)
            except MalformedPayload as e:
                raise DecryptionFailed("Decrypted layer has an invalid hop address") from e
        except (MalformedPayload, DecryptionFailed):
            self.state.status = RelayStatus.FAILED
            raise
        self.state.last_received_decrypted = remainder
        self.state.last_destination = destination
        self.log("PEEL", f"Peeled {len(payload)} chars, next hop {destination} ({len(remainder)} chars)")
        return PeeledLayer(destination, remainder)

    def forward(self, peeled: PeeledLayer):
        """Sends the remainder to the next hop. Raises ForwardingFailed, never retries."""
        try:
            self.transport.send(peeled.destination, peeled.payload)
        except ForwardingFailed:
            self.state.status = RelayStatus.FAILED
            raise
        self.state.status = RelayStatus.FORWARDED
        self.log("FORWARD", f"Forwarded to {peeled.destination}")

    def handle_incoming(self, payload: str) -> Outcome:
        """Peels and forwards one message. A failed forward is logged, not raised."""
        peeled = self.peel(payload)
        try:
            self.forward(peeled)
        except ForwardingFailed as e:
            self.log("FORWARD_ERROR", str(e))
            return Outcome.FAILED
        return Outcome.FORWARDED
