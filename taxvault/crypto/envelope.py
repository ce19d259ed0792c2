"""
Encryption Envelope Codec

Every stored file is a single buffer with a fixed 44 byte header:

    salt (16) || iv (12) || auth tag (16) || ciphertext (rest)

There is no magic number, version byte or length prefix. The header fields
have fixed sizes and the ciphertext takes up whatever remains, which keeps
files written by the previous backend readable byte for byte.
"""

from pydantic import BaseModel, ConfigDict, field_validator


SALT_LENGTH = 16
IV_LENGTH = 12
AUTH_TAG_LENGTH = 16
HEADER_LENGTH = SALT_LENGTH + IV_LENGTH + AUTH_TAG_LENGTH  # 44


class CryptoError(Exception):
    """Base exception for encryption and envelope errors."""
    pass


class MalformedEnvelopeError(CryptoError):
    """Buffer cannot hold a valid envelope."""
    pass


class EncryptionEnvelope(BaseModel):
    """
    The unit persisted per encrypted file.

    Immutable: replacing a file creates a new envelope under a new stored name.
    """
    model_config = ConfigDict(frozen=True)

    salt: bytes
    iv: bytes
    auth_tag: bytes
    ciphertext: bytes

    @field_validator('salt')
    @classmethod
    def validate_salt(cls, v: bytes) -> bytes:
        if len(v) != SALT_LENGTH:
            raise ValueError(f"salt must be {SALT_LENGTH} bytes, got {len(v)}")
        return v

    @field_validator('iv')
    @classmethod
    def validate_iv(cls, v: bytes) -> bytes:
        if len(v) != IV_LENGTH:
            raise ValueError(f"iv must be {IV_LENGTH} bytes, got {len(v)}")
        return v

    @field_validator('auth_tag')
    @classmethod
    def validate_auth_tag(cls, v: bytes) -> bytes:
        if len(v) != AUTH_TAG_LENGTH:
            raise ValueError(f"auth_tag must be {AUTH_TAG_LENGTH} bytes, got {len(v)}")
        return v


def encode_envelope(envelope: EncryptionEnvelope) -> bytes:
    """Serialize an envelope to its on-disk byte layout."""
    return b"".join([
        envelope.salt,
        envelope.iv,
        envelope.auth_tag,
        envelope.ciphertext,
    ])


def decode_envelope(data: bytes) -> EncryptionEnvelope:
    """
    Parse the on-disk byte layout back into an envelope.

    Raises:
        MalformedEnvelopeError: If the buffer is shorter than the header
    """
    if len(data) < HEADER_LENGTH:
        raise MalformedEnvelopeError(
            f"Envelope is {len(data)} bytes, header alone needs {HEADER_LENGTH}"
        )

    iv_start = SALT_LENGTH
    tag_start = iv_start + IV_LENGTH
    return EncryptionEnvelope(
        salt=bytes(data[:iv_start]),
        iv=bytes(data[iv_start:tag_start]),
        auth_tag=bytes(data[tag_start:HEADER_LENGTH]),
        ciphertext=bytes(data[HEADER_LENGTH:]),
    )
