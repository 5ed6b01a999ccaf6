"""Core cryptographic primitives for transparent note encryption.

Uses the cryptography library for:
- PBKDF2-HMAC-SHA256 key derivation (600,000 iterations)
- AES-256-GCM authenticated encryption of a single text blob

Blob format (ASCII):
    OBCRYPT:v1:<base64 salt>:<base64 iv>:<base64 ciphertext+tag>
"""

import base64
import binascii
import hashlib
import hmac
import os
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from .exceptions import (
    AuthenticationError,
    EncryptionError,
    MalformedBlobError,
    NotEncryptedError,
)

BLOB_HEADER = "OBCRYPT:v1:"

# Key derivation parameters
PBKDF2_ITERATIONS = 600_000
SALT_SIZE = 16
IV_SIZE = 12  # 96 bits for AES-GCM
KEY_SIZE = 32  # 256 bits for AES-256


def is_encrypted(content: str) -> bool:
    """Check whether content is an encrypted blob."""
    return content.startswith(BLOB_HEADER)


def _b64encode(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _b64decode(field: str, name: str) -> bytes:
    try:
        return base64.b64decode(field, validate=True)
    except (binascii.Error, ValueError):
        raise MalformedBlobError(f"Invalid base64 in blob {name}")


class KeyCache:
    """
    Derived keys for one password, keyed by base64 salt.

    Holds a fingerprint of the password the keys were derived under. A lookup
    under any other password empties the cache before it is used.
    """

    def __init__(self):
        self._keys: dict[str, bytes] = {}
        self._password_ref: Optional[bytes] = None

    @staticmethod
    def _fingerprint(password: str) -> bytes:
        return hashlib.sha256(password.encode("utf-8")).digest()

    def bind(self, password: str) -> None:
        """Scope the cache to a password, flushing it if the password changed."""
        ref = self._fingerprint(password)
        if self._password_ref is None or not hmac.compare_digest(ref, self._password_ref):
            self._keys.clear()
            self._password_ref = ref

    def get(self, salt_b64: str) -> Optional[bytes]:
        return self._keys.get(salt_b64)

    def put(self, salt_b64: str, key: bytes) -> None:
        self._keys[salt_b64] = key

    def clear(self) -> None:
        """Wipe all keys and the password identity."""
        self._keys.clear()
        self._password_ref = None

    def __len__(self) -> int:
        return len(self._keys)


class CipherEngine:
    """
    Authenticated encryption of text blobs under a password.

    Usage:
        engine = CipherEngine()
        blob = engine.encrypt("# Diary #private", password)
        text = engine.decrypt(blob, password)
    """

    def __init__(
        self,
        iterations: int = PBKDF2_ITERATIONS,
        salt_size: int = SALT_SIZE,
        iv_size: int = IV_SIZE,
        key_cache: Optional[KeyCache] = None,
    ):
        """
        Initialize the engine.

        Args:
            iterations: PBKDF2 iteration count
            salt_size: Random salt length per blob
            iv_size: Random AES-GCM nonce length per blob
            key_cache: Cache of derived keys (a private one if not provided)
        """
        self.iterations = iterations
        self.salt_size = salt_size
        self.iv_size = iv_size
        self.key_cache = key_cache if key_cache is not None else KeyCache()

    @staticmethod
    def is_encrypted(content: str) -> bool:
        return is_encrypted(content)

    def derive_key(self, password: str, salt: bytes) -> bytes:
        """
        Derive a 256-bit key from password using PBKDF2-HMAC-SHA256.

        Keys are cached per salt for the current password, so repeated reads
        of the same file in a session derive once.

        Args:
            password: Session password
            salt: Salt stored in the blob

        Returns:
            32-byte derived key
        """
        self.key_cache.bind(password)

        salt_b64 = _b64encode(salt)
        cached = self.key_cache.get(salt_b64)
        if cached is not None:
            return cached

        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=KEY_SIZE,
            salt=salt,
            iterations=self.iterations,
        )
        key = kdf.derive(password.encode("utf-8"))
        self.key_cache.put(salt_b64, key)
        return key

    def clear_key_cache(self) -> None:
        """Forget every derived key and the password they belong to."""
        self.key_cache.clear()

    def encrypt(self, plaintext: str, password: str) -> str:
        """
        Encrypt text into a blob.

        A fresh salt and iv are drawn for every call.

        Args:
            plaintext: Text to encrypt
            password: Session password

        Returns:
            Serialized blob
        """
        salt = os.urandom(self.salt_size)
        iv = os.urandom(self.iv_size)
        key = self.derive_key(password, salt)

        try:
            ciphertext = AESGCM(key).encrypt(iv, plaintext.encode("utf-8"), None)
        except (ValueError, OverflowError) as e:
            raise EncryptionError(f"AES-GCM encryption failed: {e}")

        return BLOB_HEADER + ":".join(
            (_b64encode(salt), _b64encode(iv), _b64encode(ciphertext))
        )

    def decrypt(self, blob: str, password: str) -> str:
        """
        Decrypt a blob.

        Args:
            blob: Serialized blob
            password: Session password

        Returns:
            Decrypted text

        Raises:
            NotEncryptedError: If blob lacks the header
            MalformedBlobError: If blob cannot be parsed
            AuthenticationError: If the tag does not verify
        """
        if not is_encrypted(blob):
            raise NotEncryptedError()

        parts = blob[len(BLOB_HEADER):].strip().split(":")
        if len(parts) != 3:
            raise MalformedBlobError(f"Expected 3 blob fields, got {len(parts)}")

        salt = _b64decode(parts[0], "salt")
        iv = _b64decode(parts[1], "iv")
        ciphertext = _b64decode(parts[2], "ciphertext")
        if not salt or not iv:
            raise MalformedBlobError("Blob salt and iv cannot be empty")

        key = self.derive_key(password, salt)

        try:
            plaintext = AESGCM(key).decrypt(iv, ciphertext, None)
        except InvalidTag:
            raise AuthenticationError()
        except ValueError as e:
            raise MalformedBlobError(f"Unusable blob parameters: {e}")

        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError:
            raise MalformedBlobError("Decrypted content is not UTF-8 text")
