"""
Cryptographic operations for the bunq client.

This module provides:
- RSA client key pair lifecycle (generation, persistence, regeneration)
- Request signing and response signature verification
- Encryption of persisted client state
"""

from bunq_client.crypto.key_manager import KeyManager, KeyPair
from bunq_client.crypto.signing import SignatureCodec, load_public_key, public_key_to_pem
from bunq_client.crypto.storage_cipher import StorageCipher, is_sealed

__all__ = [
    "KeyManager",
    "KeyPair",
    "SignatureCodec",
    "StorageCipher",
    "is_sealed",
    "load_public_key",
    "public_key_to_pem",
]
