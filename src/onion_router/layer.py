from .config import ENCRYPTED_KEY_WIDTH, HOP_ADDRESS_WIDTH
from .errors import MalformedPayload

MAX_HOP_ADDRESS = 10 ** HOP_ADDRESS_WIDTH - 1


# Formats a destination as a fixed-width, zero-padded decimal field
def format_hop_address(address: int) -> str:
    if not 0 <= address <= MAX_HOP_ADDRESS:
        raise ValueError(f"Hop address {address} does not fit in {HOP_ADDRESS_WIDTH} digits")
    return str(address).zfill(HOP_ADDRESS_WIDTH)


# Parses a fixed-width hop address field
def parse_hop_address(field: str) -> int:
    if len(field) != HOP_ADDRESS_WIDTH or not (field.isascii() and field.isdigit()):
        raise MalformedPayload("Invalid hop address field")
    return int(field)


# Joins an encrypted key segment and an encrypted body into one layer
def join_layer(encrypted_key: str, encrypted_body: str) -> str:
    if len(encrypted_key) != ENCRYPTED_KEY_WIDTH:
        raise ValueError(f"Encrypted key segment must be {ENCRYPTED_KEY_WIDTH} chars, got {len(encrypted_key)}")
    return encrypted_key + encrypted_body


# Splits a layer into (encrypted key segment, encrypted body)
def split_layer(payload: str):
    if len(payload) < ENCRYPTED_KEY_WIDTH:
        raise MalformedPayload(f"Payload of {len(payload)} chars is shorter than the "
                               f"{ENCRYPTED_KEY_WIDTH}-char key segment")
    return payload[:ENCRYPTED_KEY_WIDTH], payload[ENCRYPTED_KEY_WIDTH:]


# Builds the plaintext body of a layer
def join_body(address: int, inner: str) -> str:
    return format_hop_address(address) + inner


# Splits a decrypted body into (next hop address, remaining payload)
def split_body(body: str):
    return parse_hop_address(body[:HOP_ADDRESS_WIDTH]), body[HOP_ADDRESS_WIDTH:]
