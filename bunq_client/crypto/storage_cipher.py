"""
Encryption of persisted client state.

Values are sealed with AES-256-GCM under a key derived from the caller's
encryption key with PBKDF2-HMAC-SHA256. The storage key a value lives under
is bound in as associated data, so a sealed value cannot be moved to
another key unnoticed.
"""

import base64
import binascii
import json
import os
from typing import Any

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

_KDF_ITERATIONS = 200_000
_KEY_SIZE = 32
_NONCE_SIZE = 12


def is_sealed(value: Any) -> bool:
    """Whether a stored value has the shape produced by StorageCipher.seal()."""
    return isinstance(value, dict) and set(value) == {"nonce", "ciphertext"}


class StorageCipher:
    """
    Seals JSON-compatible values for storage.

    Key derivation takes a noticeable fraction of a second; build one cipher
    per client run, off the event loop.
    """

    def __init__(self, encryption_key: str, *, salt: bytes) -> None:
        """
        Args:
            encryption_key: Secret supplied by the application.
            salt: KDF salt; fixed per storage namespace.
        """
        if not encryption_key:
            msg = "encryption_key must not be empty"
            raise ValueError(msg)
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=_KEY_SIZE,
            salt=salt,
            iterations=_KDF_ITERATIONS,
        )
        self._aesgcm = AESGCM(kdf.derive(encryption_key.encode("utf-8")))

    def seal(self, value: Any, *, context: str) -> dict[str, str]:
        """
        Encrypt a JSON-compatible value.

        Args:
            value: Value to encrypt.
            context: Storage key the sealed value is written under.

        Returns:
            ``{"nonce": ..., "ciphertext": ...}`` with base64 fields.
        """
        nonce = os.urandom(_NONCE_SIZE)
        plaintext = json.dumps(value).encode("utf-8")
        ciphertext = self._aesgcm.encrypt(nonce, plaintext, context.encode("utf-8"))
        return {
            "nonce": base64.b64encode(nonce).decode("ascii"),
            "ciphertext": base64.b64encode(ciphertext).decode("ascii"),
        }

    def open(self, sealed: dict[str, str], *, context: str) -> Any:
        """
        Decrypt a value produced by seal().

        Raises:
            ValueError: If the value is malformed, was sealed under another
                key, or was tampered with.
        """
        try:
            nonce = base64.b64decode(sealed["nonce"], validate=True)
            ciphertext = base64.b64decode(sealed["ciphertext"], validate=True)
            plaintext = self._aesgcm.decrypt(nonce, ciphertext, context.encode("utf-8"))
        except (KeyError, TypeError, binascii.Error, InvalidTag) as e:
            msg = "Stored value cannot be decrypted"
            raise ValueError(msg) from e
        return json.loads(plaintext)
