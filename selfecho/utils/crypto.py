import base64
import binascii
import hashlib
import logging
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from selfecho.exceptions import DecryptError

logger = logging.getLogger(__name__)

DEFAULT_PASSPHRASE = "selfecho-imap-secret"
NONCE_SIZE = 12


def derive_key(passphrase: str | None) -> bytes:
    """Derive the 256-bit vault key from the configured passphrase."""
    if not passphrase:
        logger.warning("IMAP_SECRET is not set, falling back to the built-in default key; configure it in production")
        passphrase = DEFAULT_PASSPHRASE
    return hashlib.sha256(passphrase.encode()).digest()


class SecretVault:
    """Authenticated encryption for stored mailbox credentials.

    Tokens are ``base64(nonce || ciphertext || tag)``. The vault keeps no state
    other than the key; changing the passphrase invalidates every stored token.
    """

    def __init__(self, key: bytes) -> None:
        self._aesgcm = AESGCM(key)

    @classmethod
    def from_passphrase(cls, passphrase: str | None) -> "SecretVault":
        return cls(derive_key(passphrase))

    def encrypt_secret(self, plaintext: str) -> str:
        """Encrypt a secret with a fresh nonce."""
        nonce = os.urandom(NONCE_SIZE)
        sealed = self._aesgcm.encrypt(nonce, plaintext.encode(), None)
        return base64.b64encode(nonce + sealed).decode()

    def decrypt_secret(self, token: str) -> str:
        """Decrypt a secret, raising DecryptError instead of returning garbage."""
        try:
            raw = base64.b64decode(token, validate=True)
        except (binascii.Error, ValueError) as e:
            raise DecryptError(f"ciphertext is not valid base64: {e}") from e

        if len(raw) < NONCE_SIZE:
            raise DecryptError("ciphertext too short")

        nonce, sealed = raw[:NONCE_SIZE], raw[NONCE_SIZE:]
        try:
            plaintext = self._aesgcm.decrypt(nonce, sealed, None)
        except InvalidTag as e:
            raise DecryptError("ciphertext failed authentication") from e

        try:
            return plaintext.decode()
        except UnicodeDecodeError as e:
            raise DecryptError("decrypted secret is not valid UTF-8") from e
