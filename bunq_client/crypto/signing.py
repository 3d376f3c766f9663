"""
Request signing and response verification.

bunq signs and verifies the raw HTTP body with RSA PKCS#1 v1.5 over SHA-256;
signatures travel base64-encoded in headers.
"""

import base64
import binascii
from collections.abc import Callable

import structlog
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

logger = structlog.get_logger(__name__)


def public_key_to_pem(public_key: rsa.RSAPublicKey) -> str:
    """Export a public key as SubjectPublicKeyInfo PEM text."""
    return public_key.public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode("ascii")


def load_public_key(pem: str) -> rsa.RSAPublicKey:
    """
    Parse a PEM encoded RSA public key.

    Raises:
        ValueError: If the PEM is malformed or not an RSA key.
    """
    key = serialization.load_pem_public_key(pem.encode("ascii"))
    if not isinstance(key, rsa.RSAPublicKey):
        msg = "Server public key is not an RSA key"
        raise ValueError(msg)
    return key


class SignatureCodec:
    """
    Signs outgoing bodies with the client key and checks server signatures.

    The private key is looked up on every call so a regenerated key pair is
    picked up without rebuilding the codec.
    """

    def __init__(self, private_key: Callable[[], rsa.RSAPrivateKey | None]) -> None:
        """
        Args:
            private_key: Accessor returning the current client private key.
        """
        self._private_key = private_key

    def sign(self, body: bytes) -> str:
        """
        Sign the exact bytes that will be transmitted.

        Returns:
            Base64 encoded signature.

        Raises:
            RuntimeError: If no client key pair is available.
        """
        key = self._private_key()
        if key is None:
            msg = "No client key pair available for signing"
            raise RuntimeError(msg)
        signature = key.sign(body, padding.PKCS1v15(), hashes.SHA256())
        return base64.b64encode(signature).decode("ascii")

    @staticmethod
    def verify(body: bytes, signature: str, server_public_key: rsa.RSAPublicKey) -> bool:
        """
        Check a base64 signature over ``body`` against the server public key.

        Returns:
            True only if the signature is well-formed and valid.
        """
        try:
            raw = base64.b64decode(signature, validate=True)
        except (binascii.Error, ValueError):
            logger.debug("Server signature is not valid base64")
            return False

        try:
            server_public_key.verify(raw, body, padding.PKCS1v15(), hashes.SHA256())
        except InvalidSignature:
            return False
        return True
