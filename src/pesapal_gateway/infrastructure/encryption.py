"""Encryption of gateway tokens held in memory and in the token cache.

Tokens are encrypted with AES-256-GCM. The key is either supplied
explicitly (hex, 32 bytes) or derived from the consumer secret with HKDF,
so the same credentials always produce the same key.

Encrypted representation::

    <nonce hex>:<ciphertext+tag hex>

The nonce is 96 random bits generated for every call, so encrypting the
same token twice yields different output.
"""

import os

import structlog
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from pesapal_gateway.models.exceptions import TokenDecryptionError

logger = structlog.get_logger(__name__)

NONCE_SIZE = 12
KEY_SIZE = 32
SEPARATOR = ":"
KEY_INFO = b"pesapal-gateway-token-cache-v1"


def derive_token_key(consumer_secret: str) -> bytes:
    """Derive the 32-byte token encryption key from the consumer secret.

    Raises:
        ValueError: If consumer_secret is empty
    """
    if not consumer_secret:
        raise ValueError("consumer_secret cannot be empty")

    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=KEY_SIZE,
        salt=None,
        info=KEY_INFO,
    )
    return hkdf.derive(consumer_secret.encode("utf-8"))


class TokenCipher:
    """Symmetric encrypt/decrypt of token strings."""

    def __init__(self, key: bytes) -> None:
        if len(key) != KEY_SIZE:
            raise ValueError(f"Encryption key must be {KEY_SIZE} bytes, got {len(key)}")
        self._aesgcm = AESGCM(key)

    @classmethod
    def from_settings(cls, consumer_secret: str, key_hex: str | None = None) -> "TokenCipher":
        if key_hex:
            return cls(bytes.fromhex(key_hex))
        return cls(derive_token_key(consumer_secret))

    def encrypt(self, token: str) -> str:
        """Encrypt a token string with a fresh random nonce."""
        if not token:
            raise ValueError("token cannot be empty")

        nonce = os.urandom(NONCE_SIZE)
        ciphertext = self._aesgcm.encrypt(nonce, token.encode("utf-8"), associated_data=None)
        return f"{nonce.hex()}{SEPARATOR}{ciphertext.hex()}"

    def decrypt(self, encrypted: str) -> str:
        """
        Recover the original token string.

        Raises:
            TokenDecryptionError: If the value is malformed, was produced with
                another key, or was tampered with
        """
        nonce_hex, separator, ciphertext_hex = encrypted.partition(SEPARATOR)
        if not separator:
            raise TokenDecryptionError("Encrypted token is missing the nonce prefix")

        try:
            nonce = bytes.fromhex(nonce_hex)
            ciphertext = bytes.fromhex(ciphertext_hex)
        except ValueError as e:
            raise TokenDecryptionError(f"Encrypted token is not valid hex: {e}") from e

        if len(nonce) != NONCE_SIZE:
            raise TokenDecryptionError(
                f"Encrypted token nonce must be {NONCE_SIZE} bytes, got {len(nonce)}"
            )

        if not ciphertext:
            raise TokenDecryptionError("Encrypted token has no ciphertext")

        try:
            plaintext = self._aesgcm.decrypt(nonce, ciphertext, associated_data=None)
        except InvalidTag as e:
            logger.error("token_decryption_failed", reason="authentication_failed")
            raise TokenDecryptionError(
                "Failed to decrypt token - invalid key or corrupted data"
            ) from e

        return plaintext.decode("utf-8")
