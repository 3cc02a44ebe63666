"""AES-256 decryption of ``.enc`` files served by the origin.

The scheme is fixed by the files already stored on the origin: the key is the
SHA-256 digest of a passphrase and the IV is 16 zero bytes. A static IV is not
sound key management; it is kept only for compatibility with existing files.
"""

import hashlib
import logging

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from mediaproxy.config import Settings
from mediaproxy.errors import DecryptionFailure

logger = logging.getLogger(__name__)

BLOCK_SIZE = 16
ZERO_IV = bytes(BLOCK_SIZE)


def derive_key(passphrase: str) -> bytes:
    """Derive the 32-byte AES key from the passphrase."""
    return hashlib.sha256(passphrase.encode()).digest()


class CryptoCodec:
    def __init__(self, passphrase: str, mode: str = "ctr"):
        if mode not in ("cbc", "ctr"):
            raise ValueError(f"Unsupported cipher mode: {mode}")
        self.mode = mode
        self._key = derive_key(passphrase) if passphrase else None

    @classmethod
    def from_settings(cls, settings: Settings) -> "CryptoCodec":
        codec = cls(settings.encryption_passphrase, settings.encryption_mode)
        if codec.configured:
            logger.warning(
                f"Encrypted files use a static zero IV (AES-256-{codec.mode.upper()}); "
                "this only protects against casual access"
            )
        else:
            logger.info("No encryption passphrase set, .enc files cannot be served")
        return codec

    @property
    def configured(self) -> bool:
        return self._key is not None

    def _cipher(self) -> Cipher:
        if self._key is None:
            raise DecryptionFailure("Decryption is not configured")
        mode = modes.CBC(ZERO_IV) if self.mode == "cbc" else modes.CTR(ZERO_IV)
        return Cipher(algorithms.AES(self._key), mode)

    def decrypt(self, data: bytes) -> bytes:
        decryptor = self._cipher().decryptor()
        if self.mode == "ctr":
            return decryptor.update(data) + decryptor.finalize()

        if len(data) % BLOCK_SIZE:
            raise DecryptionFailure("Ciphertext length is not a multiple of the block size")
        try:
            padded = decryptor.update(data) + decryptor.finalize()
            unpadder = padding.PKCS7(BLOCK_SIZE * 8).unpadder()
            return unpadder.update(padded) + unpadder.finalize()
        except ValueError as e:
            raise DecryptionFailure(f"Invalid padding: {e}")

    def encrypt(self, data: bytes) -> bytes:
        """Encrypt plaintext with the same scheme, for producing ``.enc`` files."""
        encryptor = self._cipher().encryptor()
        if self.mode == "cbc":
            padder = padding.PKCS7(BLOCK_SIZE * 8).padder()
            data = padder.update(data) + padder.finalize()
        return encryptor.update(data) + encryptor.finalize()
