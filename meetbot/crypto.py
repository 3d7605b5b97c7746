"""
At-rest encryption for OAuth tokens.

Tokens are sealed with AES-256-GCM. The stored form is
base64(nonce || ciphertext) with a fresh 12-byte nonce per value.

Run `python -m meetbot.crypto` to print a new TOKEN_ENCRYPTION_KEY.
"""
from __future__ import annotations

import base64
import binascii
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .errors import TokenDecryptionError


KEY_SIZE = 32
NONCE_SIZE = 12


class TokenCipher:
    """Encrypts and decrypts token strings with a single AES-256-GCM key."""

    def __init__(self, key: bytes):
        if len(key) != KEY_SIZE:
            raise ValueError(f"key must be {KEY_SIZE} bytes, got {len(key)}")
        self._aead = AESGCM(key)

    @classmethod
    def from_base64_key(cls, encoded: str) -> "TokenCipher":
        """
        Build a cipher from a base64-encoded key.

        Raises:
            ValueError: If the value is not base64 or not 32 bytes once decoded
        """
        try:
            key = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError):
            raise ValueError("key is not valid base64")
        return cls(key)

    def encrypt(self, plaintext: str) -> str:
        nonce = os.urandom(NONCE_SIZE)
        sealed = self._aead.encrypt(nonce, plaintext.encode("utf-8"), None)
        return base64.b64encode(nonce + sealed).decode("ascii")

    def decrypt(self, encrypted: str) -> str:
        try:
            combined = base64.b64decode(encrypted, validate=True)
        except (binascii.Error, ValueError):
            raise TokenDecryptionError("Invalid encrypted token format")

        if len(combined) < NONCE_SIZE:
            raise TokenDecryptionError("Encrypted token too short")

        nonce, sealed = combined[:NONCE_SIZE], combined[NONCE_SIZE:]
        try:
            plaintext = self._aead.decrypt(nonce, sealed, None)
        except InvalidTag:
            raise TokenDecryptionError("Decryption failed")

        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError:
            raise TokenDecryptionError("Decrypted data is not valid UTF-8")


def generate_key() -> str:
    """Generate a new base64-encoded 32-byte key."""
    return base64.b64encode(AESGCM.generate_key(bit_length=256)).decode("ascii")


def main() -> None:
    print("Generated TOKEN_ENCRYPTION_KEY:")
    print(generate_key())
    print()
    print("This is a 32-byte AES-256 key encoded in base64.")
    print("Keep this secret and secure!")


if __name__ == "__main__":
    main()
