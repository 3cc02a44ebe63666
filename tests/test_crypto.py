import hashlib

import pytest
from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from mediaproxy.crypto import CryptoCodec, derive_key
from mediaproxy.errors import DecryptionFailure

PASSPHRASE = "najuzi-test"
PLAINTEXT = b"%PDF-1.7\nlesson notes with an odd length!"


def _reference_encrypt(data: bytes, mode: str) -> bytes:
    """Encrypt the way the origin's tooling does: SHA-256 key, zero IV."""
    key = hashlib.sha256(PASSPHRASE.encode()).digest()
    if mode == "cbc":
        padder = padding.PKCS7(128).padder()
        data = padder.update(data) + padder.finalize()
        cipher = Cipher(algorithms.AES(key), modes.CBC(b"\x00" * 16))
    else:
        cipher = Cipher(algorithms.AES(key), modes.CTR(b"\x00" * 16))
    encryptor = cipher.encryptor()
    return encryptor.update(data) + encryptor.finalize()


def test_derive_key():
    key = derive_key(PASSPHRASE)
    assert len(key) == 32
    assert key == hashlib.sha256(PASSPHRASE.encode()).digest()


@pytest.mark.parametrize("mode", ["cbc", "ctr"])
def test_decrypt_reference_ciphertext(mode):
    codec = CryptoCodec(PASSPHRASE, mode)
    assert codec.decrypt(_reference_encrypt(PLAINTEXT, mode)) == PLAINTEXT


@pytest.mark.parametrize("mode", ["cbc", "ctr"])
def test_encrypt_matches_reference(mode):
    codec = CryptoCodec(PASSPHRASE, mode)
    assert codec.encrypt(PLAINTEXT) == _reference_encrypt(PLAINTEXT, mode)


def test_decrypt_empty_ctr():
    assert CryptoCodec(PASSPHRASE, "ctr").decrypt(b"") == b""


def test_cbc_bad_length():
    with pytest.raises(DecryptionFailure):
        CryptoCodec(PASSPHRASE, "cbc").decrypt(b"x" * 17)


def test_cbc_bad_padding():
    # Unpadded block ending in 0x00, which is never a valid PKCS7 pad
    key = hashlib.sha256(PASSPHRASE.encode()).digest()
    encryptor = Cipher(algorithms.AES(key), modes.CBC(b"\x00" * 16)).encryptor()
    ciphertext = encryptor.update(b"A" * 15 + b"\x00") + encryptor.finalize()
    with pytest.raises(DecryptionFailure):
        CryptoCodec(PASSPHRASE, "cbc").decrypt(ciphertext)


def test_not_configured():
    codec = CryptoCodec("")
    assert not codec.configured
    with pytest.raises(DecryptionFailure):
        codec.decrypt(b"data")


def test_unknown_mode():
    with pytest.raises(ValueError):
        CryptoCodec(PASSPHRASE, "ecb")
