import base64
import binascii
import os

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from .config import IV_SIZE, RSA_KEY_SIZE, SYM_KEY_SIZE
from .errors import CryptoError


class EncryptionUtils:
    BLOCK_SIZE = 16

    # Encodes bytes as base64 text
    @staticmethod
    def to_base64(data: bytes) -> str:
        return base64.b64encode(data).decode("ascii")

    # Decodes base64 text, rejecting anything that is not strict base64
    @staticmethod
    def from_base64(text: str) -> bytes:
        try:
            return base64.b64decode(text, validate=True)
        except (binascii.Error, ValueError, TypeError) as e:
            raise CryptoError(f"Invalid base64 data: {e}") from e

    # ---------------- RSA ----------------

    # Generates an RSA key pair used to wrap per-layer symmetric keys
    @staticmethod
    def generate_rsa_key_pair():
        private_key = rsa.generate_private_key(public_exponent=65537, key_size=RSA_KEY_SIZE)
        return private_key.public_key(), private_key

    @staticmethod
    def export_public_key(key) -> str:
        der = key.public_bytes(encoding=serialization.Encoding.DER,
                               format=serialization.PublicFormat.SubjectPublicKeyInfo)
        return EncryptionUtils.to_base64(der)

    @staticmethod
    def export_private_key(key):
        if key is None:
            return None
        der = key.private_bytes(encoding=serialization.Encoding.DER,
                                format=serialization.PrivateFormat.PKCS8,
                                encryption_algorithm=serialization.NoEncryption())
        return EncryptionUtils.to_base64(der)

    @staticmethod
    def import_public_key(text: str):
        try:
            return serialization.load_der_public_key(EncryptionUtils.from_base64(text))
        except (ValueError, UnsupportedAlgorithm) as e:
            raise CryptoError(f"Invalid public key: {e}") from e

    @staticmethod
    def import_private_key(text: str):
        try:
            return serialization.load_der_private_key(EncryptionUtils.from_base64(text), password=None)
        except (ValueError, TypeError, UnsupportedAlgorithm) as e:
            raise CryptoError(f"Invalid private key: {e}") from e

    @staticmethod
    def _oaep():
        return padding.OAEP(mgf=padding.MGF1(algorithm=hashes.SHA256()),
                            algorithm=hashes.SHA256(), label=None)

    # Encrypts base64 data with an RSA public key (key object or exported text)
    @staticmethod
    def rsa_encrypt(b64_data: str, public_key) -> str:
        if isinstance(public_key, str):
            public_key = EncryptionUtils.import_public_key(public_key)
        data = EncryptionUtils.from_base64(b64_data)
        try:
            encrypted = public_key.encrypt(data, EncryptionUtils._oaep())
        except ValueError as e:
            raise CryptoError(f"RSA encryption failed ({len(data)} bytes): {e}") from e
        return EncryptionUtils.to_base64(encrypted)

    # Decrypts RSA ciphertext, returns the plaintext as base64
    @staticmethod
    def rsa_decrypt(b64_data: str, private_key) -> str:
        data = EncryptionUtils.from_base64(b64_data)
        try:
            decrypted = private_key.decrypt(data, EncryptionUtils._oaep())
        except ValueError as e:
            raise CryptoError("RSA decryption failed") from e
        return EncryptionUtils.to_base64(decrypted)

    # ---------------- AES ----------------

    # Generates a fresh AES-256 key
    @staticmethod
    def create_random_symmetric_key() -> bytes:
        return os.urandom(SYM_KEY_SIZE)

    @staticmethod
    def export_sym_key(key: bytes) -> str:
        return EncryptionUtils.to_base64(key)

    @staticmethod
    def import_sym_key(text: str) -> bytes:
        key = EncryptionUtils.from_base64(text)
        if len(key) != SYM_KEY_SIZE:
            raise CryptoError(f"Symmetric key must be {SYM_KEY_SIZE} bytes, got {len(key)}")
        return key

    # Pads the input data
    @staticmethod
    def pad(data: bytes) -> bytes:
        pad_len = EncryptionUtils.BLOCK_SIZE - (len(data) % EncryptionUtils.BLOCK_SIZE)
        return data + bytes([pad_len] * pad_len)

    # Unpads the input data
    @staticmethod
    def unpad(data: bytes) -> bytes:
        if not data:
            raise CryptoError("Nothing to unpad")
        pad_len = data[-1]
        if pad_len < 1 or pad_len > EncryptionUtils.BLOCK_SIZE or data[-pad_len:] != bytes([pad_len] * pad_len):
            raise CryptoError("Invalid padding")
        return data[:-pad_len]

    # Encrypts text with AES-CBC under a fresh IV, returns base64(iv + ciphertext)
    @staticmethod
    def sym_encrypt(key: bytes, data: str) -> str:
        iv = os.urandom(IV_SIZE)
        cipher = Cipher(algorithms.AES(key), modes.CBC(iv))
        enc = cipher.encryptor()
        padded = EncryptionUtils.pad(data.encode("utf-8"))
        return EncryptionUtils.to_base64(iv + enc.update(padded) + enc.finalize())

    # Decrypts base64(iv + ciphertext) with an exported AES key
    @staticmethod
    def sym_decrypt(str_key: str, encrypted_data: str) -> str:
        key = EncryptionUtils.import_sym_key(str_key)
        data = EncryptionUtils.from_base64(encrypted_data)
        iv, body = data[:IV_SIZE], data[IV_SIZE:]
        if len(iv) != IV_SIZE or not body or len(body) % EncryptionUtils.BLOCK_SIZE:
            raise CryptoError(f"Inconsistent ciphertext length {len(data)}")
        cipher = Cipher(algorithms.AES(key), modes.CBC(iv))
        dec = cipher.decryptor()
        out = EncryptionUtils.unpad(dec.update(body) + dec.finalize())
        try:
            return out.decode("utf-8")
        except UnicodeDecodeError as e:
            raise CryptoError("Decrypted data is not valid text") from e
