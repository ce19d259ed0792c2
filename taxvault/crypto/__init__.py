"""Envelope codec and file encryption engine."""

from taxvault.crypto.engine import (
    KEY_LENGTH,
    AuthenticationFailedError,
    EncryptionEngine,
)
from taxvault.crypto.envelope import (
    AUTH_TAG_LENGTH,
    HEADER_LENGTH,
    IV_LENGTH,
    SALT_LENGTH,
    CryptoError,
    EncryptionEnvelope,
    MalformedEnvelopeError,
    decode_envelope,
    encode_envelope,
)

__all__ = [
    # Engine
    "AuthenticationFailedError",
    "EncryptionEngine",
    "KEY_LENGTH",
    # Envelope
    "AUTH_TAG_LENGTH",
    "CryptoError",
    "EncryptionEnvelope",
    "HEADER_LENGTH",
    "IV_LENGTH",
    "MalformedEnvelopeError",
    "SALT_LENGTH",
    "decode_envelope",
    "encode_envelope",
]
