"""
File Encryption Engine

Password based authenticated encryption for whole file buffers:

    key = scrypt(password, salt) -> 32 bytes
    ciphertext, tag = AES-256-GCM(key, iv, plaintext)

A fresh salt and IV are drawn for every file, so the same plaintext encrypted
twice never produces the same envelope. The password is handed to the engine
once, at construction time.
"""

import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from taxvault.crypto.envelope import (
    AUTH_TAG_LENGTH,
    IV_LENGTH,
    SALT_LENGTH,
    CryptoError,
    EncryptionEnvelope,
    decode_envelope,
    encode_envelope,
)


KEY_LENGTH = 32  # AES-256


class AuthenticationFailedError(CryptoError):
    """
    The auth tag did not verify.

    Raised for tampered ciphertext, a wrong password or a corrupted envelope.
    No plaintext is ever returned alongside this error.
    """
    pass


class EncryptionEngine:
    """Encrypts and decrypts byte buffers under one shared password."""

    def __init__(
        self,
        password: str,
        scrypt_n: int = 16384,
        scrypt_r: int = 8,
        scrypt_p: int = 1,
    ):
        if not password:
            raise ValueError("Encryption password must not be empty")
        self._password = password.encode("utf-8")
        self._n = scrypt_n
        self._r = scrypt_r
        self._p = scrypt_p

    def derive_key(self, salt: bytes) -> bytes:
        """Derive the 32 byte file key for ``salt``. Deterministic."""
        kdf = Scrypt(salt=salt, length=KEY_LENGTH, n=self._n, r=self._r, p=self._p)
        return kdf.derive(self._password)

    def encrypt(self, plaintext: bytes) -> EncryptionEnvelope:
        salt = os.urandom(SALT_LENGTH)
        iv = os.urandom(IV_LENGTH)
        key = self.derive_key(salt)

        # AESGCM appends the 16 byte tag to the ciphertext
        sealed = AESGCM(key).encrypt(iv, plaintext, None)
        return EncryptionEnvelope(
            salt=salt,
            iv=iv,
            auth_tag=sealed[-AUTH_TAG_LENGTH:],
            ciphertext=sealed[:-AUTH_TAG_LENGTH],
        )

    def decrypt(self, envelope: EncryptionEnvelope) -> bytes:
        """
        Verify and decrypt an envelope.

        Raises:
            AuthenticationFailedError: If the tag does not verify
        """
        key = self.derive_key(envelope.salt)
        try:
            return AESGCM(key).decrypt(
                envelope.iv,
                envelope.ciphertext + envelope.auth_tag,
                None,
            )
        except InvalidTag:
            raise AuthenticationFailedError(
                "Authentication tag did not verify"
            ) from None

    def encrypt_bytes(self, plaintext: bytes) -> bytes:
        """Encrypt and serialize in one step."""
        return encode_envelope(self.encrypt(plaintext))

    def decrypt_bytes(self, data: bytes) -> bytes:
        """Parse and decrypt a serialized envelope."""
        return self.decrypt(decode_envelope(data))
