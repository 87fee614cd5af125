class OnionError(Exception):
    """Base class for every failure of an onion message in flight."""

    http_status = 500
    # Sent to remote callers instead of str(error) when set
    public_message = None


class CryptoError(OnionError):
    """A cryptographic primitive rejected its input."""


class DirectoryUnavailable(OnionError):
    """The node directory could not be reached or returned garbage."""

    http_status = 503


class InsufficientNodes(OnionError):
    """The directory holds fewer relays than a circuit needs."""

    http_status = 409


class EncryptionFailed(OnionError):
    """An onion layer could not be built. Nothing was sent."""


class MalformedPayload(OnionError):
    """An incoming payload is too short or badly framed to be peeled."""

    http_status = 400


class DecryptionFailed(OnionError):
    """
    A layer did not decrypt under this relay's key.

    Raised for a key segment encrypted for another relay, and for a body that
    decrypts to garbage (bad padding, invalid text or an invalid hop address).
    Messages never carry decrypted content.
    """

    http_status = 400
    public_message = "Layer could not be decrypted"


class RequestTooLarge(OnionError):
    """A request body is over the configured maximum size."""

    http_status = 413


class ForwardingFailed(OnionError):
    """The next hop could not be reached or refused the payload."""

    http_status = 502
