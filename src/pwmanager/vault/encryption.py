# Vault - Encryption Scheme
#
# Password → key (PBKDF2-HMAC-SHA256, salted)
# Entry file encryption (AES-256-GCM, module name as associated data)
# Only the KDF parameters, the salt and the nonce are ever persisted.

import base64
import binascii
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from ..config import DEFAULT_KDF_ITERATIONS
from .exceptions import (
    AuthenticationError,
    EncryptionError,
    KeyDerivationError,
    SerializationError,
)

PBKDF2_SHA256 = "pbkdf2-sha256"
KDF_VERSION = 1
KEY_LENGTH = 32  # 256 bits for AES-256
SALT_LENGTH = 32  # 256-bit salt
NONCE_LENGTH = 12  # 96-bit nonce for GCM

Password = Union[str, bytes]


@dataclass(frozen=True)
class KdfParameters:
    """Algorithm identifier, version and cost of the key derivation."""
    algorithm: str = PBKDF2_SHA256
    version: int = KDF_VERSION
    iterations: int = DEFAULT_KDF_ITERATIONS
    length: int = KEY_LENGTH

    def validate(self) -> None:
        """
        Raises:
            KeyDerivationError: Unsupported algorithm/version or bad cost.
        """
        if self.algorithm != PBKDF2_SHA256:
            raise KeyDerivationError(f"Unsupported KDF algorithm: {self.algorithm!r}")
        if self.version != KDF_VERSION:
            raise KeyDerivationError(
                f"Unsupported {self.algorithm} version: {self.version}"
            )
        if self.iterations <= 0:
            raise KeyDerivationError(f"KDF iterations must be positive, got {self.iterations}")
        if self.length != KEY_LENGTH:
            raise KeyDerivationError(
                f"KDF output length must be {KEY_LENGTH} bytes, got {self.length}"
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "algorithm": self.algorithm,
            "version": self.version,
            "iterations": self.iterations,
            "length": self.length,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "KdfParameters":
        if not isinstance(data, dict):
            raise SerializationError("kdf must be an object")
        algorithm = data.get("algorithm")
        if not isinstance(algorithm, str):
            raise SerializationError("kdf.algorithm must be a string")
        values = {}
        for key in ("version", "iterations", "length"):
            value = data.get(key)
            # bool is an int subclass; reject it explicitly
            if not isinstance(value, int) or isinstance(value, bool):
                raise SerializationError(f"kdf.{key} must be an integer")
            values[key] = value
        return cls(algorithm=algorithm, **values)


def _password_bytes(password: Password) -> bytes:
    if isinstance(password, bytes):
        return password
    return password.encode("utf-8")


def encode_for_storage(data: bytes) -> str:
    """Encode binary data as base64 text."""
    return base64.b64encode(data).decode("utf-8")


def decode_from_storage(data: str) -> bytes:
    """Decode base64 text written by encode_for_storage()."""
    return base64.b64decode(data.encode("utf-8"), validate=True)


@dataclass
class EncryptionScheme:
    """
    Parameters needed to re-derive a module key and open its ciphertext.

    Flow:
    1. User enters the module password
    2. PBKDF2 derives a 256-bit key from password + salt
    3. AES-256-GCM seals the entry file, bound to the module name (AAD)
    4. A fresh nonce is drawn on every encrypt() and stored here, so the
       scheme must be persisted after each encryption
    """
    kdf_params: KdfParameters = field(default_factory=KdfParameters)
    salt: bytes = b""
    nonce: bytes = b""

    @classmethod
    def default(cls, kdf_params: Optional[KdfParameters] = None) -> "EncryptionScheme":
        """New scheme with random salt, random nonce and default KDF cost."""
        return cls(
            kdf_params=kdf_params or KdfParameters(),
            salt=os.urandom(SALT_LENGTH),
            nonce=os.urandom(NONCE_LENGTH),
        )

    def derive_key(self, password: Password) -> bytes:
        """
        Derive the module key from a password attempt.

        Raises:
            KeyDerivationError: Invalid KDF parameters or salt
        """
        self.kdf_params.validate()
        if not self.salt:
            raise KeyDerivationError("Salt must not be empty")
        try:
            kdf = PBKDF2HMAC(
                algorithm=hashes.SHA256(),
                length=self.kdf_params.length,
                salt=self.salt,
                iterations=self.kdf_params.iterations,
            )
            return kdf.derive(_password_bytes(password))
        except (TypeError, ValueError) as e:
            raise KeyDerivationError(f"Key derivation failed: {e}") from e

    @staticmethod
    def _cipher(key: bytes) -> AESGCM:
        try:
            return AESGCM(key)
        except ValueError as e:
            raise EncryptionError(f"Cipher rejected key: {e}") from e

    def encrypt(self, password: Password, plaintext: bytes, aad: bytes) -> bytes:
        """
        Encrypt plaintext under a fresh nonce.

        The new nonce replaces self.nonce; the caller persists the scheme.

        Raises:
            KeyDerivationError: Invalid KDF parameters
            EncryptionError: Cipher construction or sealing failed
        """
        cipher = self._cipher(self.derive_key(password))
        nonce = os.urandom(NONCE_LENGTH)
        try:
            ciphertext = cipher.encrypt(nonce, plaintext, aad)
        except (TypeError, ValueError, OverflowError) as e:
            raise EncryptionError(f"Encryption failed: {e}") from e
        self.nonce = nonce
        return ciphertext

    def decrypt(self, password: Password, ciphertext: bytes, aad: bytes) -> bytes:
        """
        Decrypt ciphertext produced by the most recent encrypt().

        Raises:
            AuthenticationError: Wrong password or tampered ciphertext
            KeyDerivationError: Invalid KDF parameters
            EncryptionError: Malformed nonce
        """
        cipher = self._cipher(self.derive_key(password))
        if len(self.nonce) != NONCE_LENGTH:
            raise EncryptionError(f"Nonce must be {NONCE_LENGTH} bytes, got {len(self.nonce)}")
        try:
            return cipher.decrypt(self.nonce, ciphertext, aad)
        except InvalidTag:
            raise AuthenticationError("Authentication failed: wrong password or corrupted data") from None

    # ── Serialization ────────────────────────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        """Non-secret fields only: KDF parameters, salt, nonce."""
        return {
            "kdf": self.kdf_params.to_dict(),
            "salt": encode_for_storage(self.salt),
            "nonce": list(self.nonce),
        }

    @classmethod
    def from_dict(cls, data: Any) -> "EncryptionScheme":
        """
        Raises:
            SerializationError: Missing or malformed field
        """
        if not isinstance(data, dict):
            raise SerializationError("Encryption scheme must be an object")
        kdf_params = KdfParameters.from_dict(data.get("kdf"))

        salt_text = data.get("salt")
        if not isinstance(salt_text, str):
            raise SerializationError("salt must be base64 text")
        try:
            salt = decode_from_storage(salt_text)
        except (binascii.Error, ValueError) as e:
            raise SerializationError(f"salt is not valid base64: {e}") from e

        raw_nonce = data.get("nonce")
        if (
            not isinstance(raw_nonce, list)
            or len(raw_nonce) != NONCE_LENGTH
            or not all(isinstance(b, int) and not isinstance(b, bool) and 0 <= b <= 255 for b in raw_nonce)
        ):
            raise SerializationError(f"nonce must be a list of {NONCE_LENGTH} bytes")

        return cls(kdf_params=kdf_params, salt=salt, nonce=bytes(raw_nonce))
