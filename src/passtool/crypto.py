"""Encryption-at-rest for stored secrets.

Secrets are encrypted with AES-256-CBC (PKCS7 padding) under a key that lives
in the OS credential store. Every token carries its own random IV and an
HMAC-SHA256 tag over ``IV || ciphertext``::

    token = base64(IV[16] || ciphertext[16*n] || tag[32])

Each encryption of the same plaintext therefore yields a different token, and
any tampering (or a key that no longer matches) fails verification before a
single byte is decrypted.
"""

import base64
import binascii
import logging
import os
import secrets
import threading
from typing import Dict, Optional, Protocol

import keyring
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, hmac, padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from keyring.errors import KeyringError, PasswordDeleteError

from .config import Config, config

logger = logging.getLogger(__name__)

KEY_LENGTH = 32  # AES-256 master key held by the key store
IV_LENGTH = 16  # AES block size
TAG_LENGTH = 32  # HMAC-SHA256
BLOCK_BITS = 128
MIN_TOKEN_LENGTH = IV_LENGTH + IV_LENGTH + TAG_LENGTH


class CryptoError(Exception):
    """Base exception for cryptographic operations."""

    pass


class DecryptionError(CryptoError):
    """Raised when a token is malformed, tampered with or from another key."""

    pass


class KeyStoreError(CryptoError):
    """Raised when the key store cannot provide a key."""

    pass


class KeyHandle:
    """Opaque reference to key material owned by a key store.

    The raw bytes are not part of the public surface; only the cipher in this
    module unwraps them.
    """

    __slots__ = ("alias", "_material")

    def __init__(self, alias: str, material: bytes):
        if len(material) != KEY_LENGTH:
            raise KeyStoreError(f"Key '{alias}' has invalid length")
        self.alias = alias
        self._material = material

    def __repr__(self) -> str:
        return f"KeyHandle(alias={self.alias!r})"


class KeyStore(Protocol):
    """A secure store that creates and hands out non-exportable keys."""

    def get_or_create_key(self, alias: str) -> KeyHandle: ...

    def delete_key(self, alias: str) -> bool: ...


class MemoryKeyStore:
    """Process-local key store. Keys vanish with the process."""

    def __init__(self):
        self._keys: Dict[str, bytes] = {}
        self._lock = threading.Lock()

    def get_or_create_key(self, alias: str) -> KeyHandle:
        with self._lock:
            if alias not in self._keys:
                self._keys[alias] = secrets.token_bytes(KEY_LENGTH)
            return KeyHandle(alias, self._keys[alias])

    def delete_key(self, alias: str) -> bool:
        with self._lock:
            return self._keys.pop(alias, None) is not None


class KeyringKeyStore:
    """Key store backed by the OS credential store through ``keyring``.

    Whether a key survives a reinstall or a profile restore depends on the
    platform backend; losing it makes every earlier token undecryptable.
    """

    def __init__(self, service: Optional[str] = None):
        self.service = service or config.keyring_service
        self._lock = threading.Lock()

    def get_or_create_key(self, alias: str) -> KeyHandle:
        with self._lock:
            try:
                stored = keyring.get_password(self.service, alias)
                if stored is None:
                    logger.info("Creating key '%s' in keyring service '%s'", alias, self.service)
                    material = secrets.token_bytes(KEY_LENGTH)
                    keyring.set_password(
                        self.service, alias, base64.b64encode(material).decode("ascii")
                    )
                    return KeyHandle(alias, material)
            except KeyringError as e:
                raise KeyStoreError(f"Key store unavailable: {e}") from e

            try:
                material = base64.b64decode(stored, validate=True)
            except (binascii.Error, ValueError) as e:
                raise KeyStoreError(f"Key '{alias}' is corrupted") from e
            return KeyHandle(alias, material)

    def delete_key(self, alias: str) -> bool:
        with self._lock:
            try:
                keyring.delete_password(self.service, alias)
                logger.warning("Deleted key '%s'; existing tokens are now unreadable", alias)
                return True
            except PasswordDeleteError:
                return False
            except KeyringError as e:
                raise KeyStoreError(f"Key store unavailable: {e}") from e


def _split_key(handle: KeyHandle) -> "tuple[bytes, bytes]":
    """Derive independent encryption and MAC subkeys from the stored key."""
    okm = HKDF(
        algorithm=hashes.SHA256(),
        length=2 * KEY_LENGTH,
        salt=None,
        info=b"passtool-secret-cipher",
    ).derive(handle._material)
    return okm[:KEY_LENGTH], okm[KEY_LENGTH:]


def _tag(mac_key: bytes, data: bytes) -> bytes:
    h = hmac.HMAC(mac_key, hashes.SHA256())
    h.update(data)
    return h.finalize()


class SecretCipher:
    """Encrypts and decrypts secret strings under one store-held key.

    The key is fetched lazily on first use and cached. Fetching is serialized;
    once cached, encrypt/decrypt read it without locking.
    """

    def __init__(self, key_store: KeyStore, alias: str = Config.KEY_ALIAS):
        self.key_store = key_store
        self.alias = alias
        self._subkeys: Optional["tuple[bytes, bytes]"] = None
        self._lock = threading.Lock()

    def _keys(self) -> "tuple[bytes, bytes]":
        subkeys = self._subkeys
        if subkeys is None:
            with self._lock:
                if self._subkeys is None:
                    self._subkeys = _split_key(self.key_store.get_or_create_key(self.alias))
                subkeys = self._subkeys
        return subkeys

    def forget_key(self) -> None:
        """Drop the cached key so the next call goes back to the key store."""
        with self._lock:
            self._subkeys = None

    def destroy_key(self) -> bool:
        """Delete the key from the store; anything it encrypted becomes unreadable."""
        with self._lock:
            self._subkeys = None
            return self.key_store.delete_key(self.alias)

    def encrypt(self, plaintext: str) -> str:
        """Encrypt a string into an opaque base64 token."""
        enc_key, mac_key = self._keys()
        try:
            iv = os.urandom(IV_LENGTH)
            padder = padding.PKCS7(BLOCK_BITS).padder()
            padded = padder.update(plaintext.encode("utf-8")) + padder.finalize()

            encryptor = Cipher(algorithms.AES(enc_key), modes.CBC(iv)).encryptor()
            ciphertext = encryptor.update(padded) + encryptor.finalize()
        except (ValueError, TypeError) as e:
            raise CryptoError(f"Encryption failed: {e}") from e

        body = iv + ciphertext
        return base64.b64encode(body + _tag(mac_key, body)).decode("ascii")

    def decrypt(self, token: str) -> str:
        """Decrypt a token produced by :meth:`encrypt`.

        Raises:
            DecryptionError: Malformed, truncated, tampered or foreign-key token.
        """
        try:
            raw = base64.b64decode(token, validate=True)
        except (binascii.Error, ValueError, TypeError) as e:
            raise DecryptionError("Token is not valid base64") from e

        if len(raw) < MIN_TOKEN_LENGTH or (len(raw) - IV_LENGTH - TAG_LENGTH) % IV_LENGTH:
            raise DecryptionError(f"Token has invalid length ({len(raw)} bytes)")

        body, tag = raw[:-TAG_LENGTH], raw[-TAG_LENGTH:]
        iv, ciphertext = body[:IV_LENGTH], body[IV_LENGTH:]

        enc_key, mac_key = self._keys()
        verifier = hmac.HMAC(mac_key, hashes.SHA256())
        verifier.update(body)
        try:
            verifier.verify(tag)
        except InvalidSignature:
            raise DecryptionError(
                "Token failed verification - tampered data or the key has changed"
            )

        try:
            decryptor = Cipher(algorithms.AES(enc_key), modes.CBC(iv)).decryptor()
            padded = decryptor.update(ciphertext) + decryptor.finalize()
            unpadder = padding.PKCS7(BLOCK_BITS).unpadder()
            plaintext = unpadder.update(padded) + unpadder.finalize()
            return plaintext.decode("utf-8")
        except (ValueError, UnicodeDecodeError) as e:
            raise DecryptionError(f"Decryption failed: {e}") from e
