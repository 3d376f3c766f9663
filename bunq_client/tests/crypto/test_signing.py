import base64

import pytest
from cryptography.hazmat.primitives.asymmetric import rsa

from bunq_client.crypto.signing import SignatureCodec, load_public_key, public_key_to_pem

BODY = b'{"secret":"api-key","description":"My Device"}'


def test_sign_then_verify_succeeds(codec: SignatureCodec, client_key: rsa.RSAPrivateKey) -> None:
    signature = codec.sign(BODY)

    assert codec.verify(BODY, signature, client_key.public_key()) is True


def test_signature_is_deterministic(codec: SignatureCodec) -> None:
    assert codec.sign(BODY) == codec.sign(BODY)


def test_verify_fails_on_mutated_body(
    codec: SignatureCodec, client_key: rsa.RSAPrivateKey
) -> None:
    signature = codec.sign(BODY)

    assert codec.verify(BODY + b" ", signature, client_key.public_key()) is False


def test_verify_fails_with_mismatched_key(
    codec: SignatureCodec, server_key: rsa.RSAPrivateKey
) -> None:
    signature = codec.sign(BODY)

    assert codec.verify(BODY, signature, server_key.public_key()) is False


def test_verify_rejects_malformed_signature(
    codec: SignatureCodec, client_key: rsa.RSAPrivateKey
) -> None:
    assert codec.verify(BODY, "not base64!!", client_key.public_key()) is False
    assert codec.verify(BODY, base64.b64encode(b"short").decode(), client_key.public_key()) is False


def test_sign_covers_exact_bytes(codec: SignatureCodec, client_key: rsa.RSAPrivateKey) -> None:
    compact = b'{"a":1}'
    spaced = b'{"a": 1}'

    assert codec.sign(compact) != codec.sign(spaced)
    assert codec.verify(spaced, codec.sign(compact), client_key.public_key()) is False


def test_sign_without_key_raises() -> None:
    codec = SignatureCodec(lambda: None)

    with pytest.raises(RuntimeError, match="No client key pair"):
        codec.sign(BODY)


def test_sign_uses_current_key(client_key: rsa.RSAPrivateKey, server_key: rsa.RSAPrivateKey) -> None:
    current = {"key": client_key}
    codec = SignatureCodec(lambda: current["key"])

    current["key"] = server_key

    assert codec.verify(BODY, codec.sign(BODY), server_key.public_key()) is True


def test_public_key_pem_round_trip(server_key: rsa.RSAPrivateKey) -> None:
    pem = public_key_to_pem(server_key.public_key())

    assert pem.startswith("-----BEGIN PUBLIC KEY-----")
    assert load_public_key(pem).public_numbers() == server_key.public_key().public_numbers()


def test_load_public_key_rejects_garbage() -> None:
    with pytest.raises(ValueError):
        load_public_key("-----BEGIN PUBLIC KEY-----\nnope\n-----END PUBLIC KEY-----\n")
