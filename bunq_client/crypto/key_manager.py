"""
Client key pair management.

bunq identifies an installation by the client's RSA public key, so the key
pair outlives process restarts through the storage collaborator and is only
replaced when the server rejects it.
"""

import asyncio
from dataclasses import dataclass

import structlog
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from bunq_client.crypto.signing import public_key_to_pem
from bunq_client.storage.protocol import StorageInterface

logger = structlog.get_logger(__name__)

_PUBLIC_EXPONENT = 65537


@dataclass(frozen=True)
class KeyPair:
    """An RSA private key and its exchange-ready public key."""

    private_key: rsa.RSAPrivateKey
    public_key_pem: str

    @property
    def public_key(self) -> rsa.RSAPublicKey:
        return self.private_key.public_key()

    def private_key_pem(self, passphrase: bytes | None = None) -> str:
        """PKCS#8 PEM, encrypted with ``passphrase`` when one is given."""
        if passphrase:
            encryption: serialization.KeySerializationEncryption = (
                serialization.BestAvailableEncryption(passphrase)
            )
        else:
            encryption = serialization.NoEncryption()
        return self.private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=encryption,
        ).decode("ascii")

    @classmethod
    def from_private_key(cls, private_key: rsa.RSAPrivateKey) -> "KeyPair":
        return cls(private_key=private_key, public_key_pem=public_key_to_pem(private_key.public_key()))

    @classmethod
    def from_pem(cls, private_key_pem: str, passphrase: bytes | None = None) -> "KeyPair":
        key = serialization.load_pem_private_key(
            private_key_pem.encode("ascii"), password=passphrase or None
        )
        if not isinstance(key, rsa.RSAPrivateKey):
            msg = "Stored private key is not an RSA key"
            raise TypeError(msg)
        return cls.from_private_key(key)


class KeyManager:
    """
    Owns the client key pair.

    The private key is persisted as PKCS#8 PEM, encrypted when a passphrase
    is set. A stored key that cannot be read with the current passphrase is
    replaced by a new one, matching SessionStore discarding state it cannot
    decrypt.
    """

    def __init__(
        self,
        storage: StorageInterface,
        *,
        key_size: int = 2048,
        storage_key: str = "BUNQJSCLIENT_PRIVATE_KEY_PEM",
    ) -> None:
        """
        Args:
            storage: Async key/value storage for the private key.
            key_size: RSA modulus size in bits for new keys.
            storage_key: Storage key for the private key PEM.
        """
        self._storage = storage
        self._key_size = key_size
        self._storage_key = storage_key
        self._key_pair: KeyPair | None = None
        self._passphrase: bytes | None = None

    @property
    def key_pair(self) -> KeyPair | None:
        """The current key pair, or None before ensure_key_pair()."""
        return self._key_pair

    def set_passphrase(self, passphrase: bytes | None) -> None:
        """
        Set the passphrase protecting the stored private key.

        A changed passphrase drops the in-memory key so the next
        ensure_key_pair() reads storage again.
        """
        if passphrase != self._passphrase:
            self._passphrase = passphrase
            self._key_pair = None

    async def ensure_key_pair(self, force: bool = False) -> KeyPair:
        """
        Load the stored key pair or generate a new one.

        Args:
            force: Generate and persist a fresh key pair even if one is stored.

        Returns:
            The key pair now in use.
        """
        if not force:
            if self._key_pair is not None:
                return self._key_pair
            stored = await self._storage.get(self._storage_key)
            if stored:
                try:
                    self._key_pair = KeyPair.from_pem(stored, self._passphrase)
                except (TypeError, ValueError) as e:
                    logger.error(
                        "Stored client key cannot be loaded, generating a new one",
                        error_type=type(e).__name__,
                    )
                else:
                    logger.debug("Loaded stored client key pair")
                    return self._key_pair

        private_key = await asyncio.to_thread(
            rsa.generate_private_key,
            public_exponent=_PUBLIC_EXPONENT,
            key_size=self._key_size,
        )
        key_pair = KeyPair.from_private_key(private_key)
        await self._storage.set(self._storage_key, key_pair.private_key_pem(self._passphrase))
        self._key_pair = key_pair
        logger.debug("Generated client key pair", key_size=self._key_size, forced=force)
        return key_pair

    async def remove(self) -> None:
        """Forget the key pair and delete it from storage."""
        self._key_pair = None
        await self._storage.remove(self._storage_key)
