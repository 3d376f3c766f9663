from collections.abc import AsyncIterator, Callable
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, Mock

import pytest
import pytest_asyncio
from cryptography.hazmat.primitives.asymmetric import rsa

from bunq_client.api.http_client import AsyncHttpClient
from bunq_client.client import BunqClient
from bunq_client.config import BunqClientConfig
from bunq_client.crypto.key_manager import KeyManager, KeyPair
from bunq_client.crypto.signing import SignatureCodec, public_key_to_pem
from bunq_client.models.session import DeviceRegistration, Installation
from bunq_client.storage.memory import MemoryStorage
from bunq_client.storage.session_store import SessionStore
from bunq_client.tests.utils.mock_transport import MockTransport

API_KEY = "sandbox_4c1e9a7f2b3d5e6f8a0c1b2d3e4f5a6b7c8d9e0f1a2b3c4d5e6f7a8b"
PRIVATE_KEY_STORAGE_KEY = "BUNQJSCLIENT_PRIVATE_KEY_PEM"
SESSION_STORAGE_KEY = "BUNQJSCLIENT_SESSION"
NOW = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Settable clock returning aware UTC datetimes."""

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture(scope="session")
def client_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def server_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def server_public_key_pem(server_key: rsa.RSAPrivateKey) -> str:
    return public_key_to_pem(server_key.public_key())


@pytest.fixture
def config() -> BunqClientConfig:
    return BunqClientConfig()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def storage(client_key: rsa.RSAPrivateKey) -> MemoryStorage:
    """Storage pre-seeded with a client key so tests skip key generation."""
    pem = KeyPair.from_private_key(client_key).private_key_pem()
    return MemoryStorage({PRIVATE_KEY_STORAGE_KEY: pem})


@pytest.fixture
def store(storage: MemoryStorage, clock: FakeClock) -> SessionStore:
    session_store = SessionStore(storage, storage_key=SESSION_STORAGE_KEY, clock=clock)
    session_store.api_key = API_KEY
    session_store.environment = "SANDBOX"
    return session_store


@pytest.fixture
def make_installation(server_key: rsa.RSAPrivateKey) -> Callable[[], Installation]:
    def _make() -> Installation:
        return Installation(
            server_public_key_pem=public_key_to_pem(server_key.public_key()),
            server_public_key=server_key.public_key(),
            token="install-token",
            created_at=NOW,
            updated_at=NOW,
        )

    return _make


@pytest.fixture
def make_device() -> Callable[[], DeviceRegistration]:
    def _make() -> DeviceRegistration:
        return DeviceRegistration(device_id=42, description="My Device", permitted_ips=("1.2.3.4",))

    return _make


@pytest.fixture
def codec(client_key: rsa.RSAPrivateKey) -> SignatureCodec:
    return SignatureCodec(lambda: client_key)


@pytest.fixture
def transport(server_key: rsa.RSAPrivateKey) -> MockTransport:
    return MockTransport(server_key)


@pytest_asyncio.fixture
async def http(
    config: BunqClientConfig,
    store: SessionStore,
    codec: SignatureCodec,
    transport: MockTransport,
) -> AsyncIterator[AsyncHttpClient]:
    client = AsyncHttpClient(
        config, store, codec, base_url=config.sandbox_api_url, transport=transport
    )
    async with client:
        yield client


@pytest.fixture
def mock_key_manager(client_key: rsa.RSAPrivateKey) -> Mock:
    manager = Mock(spec=KeyManager)
    manager.key_pair = KeyPair.from_private_key(client_key)
    manager.ensure_key_pair = AsyncMock(return_value=manager.key_pair)
    return manager


@pytest_asyncio.fixture
async def bunq_client(
    storage: MemoryStorage,
    config: BunqClientConfig,
    transport: MockTransport,
    clock: FakeClock,
    monkeypatch: pytest.MonkeyPatch,
) -> AsyncIterator[BunqClient]:
    monkeypatch.setenv("ENV_CI", "true")
    client = BunqClient(storage, config, transport=transport, clock=clock)
    await client.run(API_KEY, ["1.2.3.4"])
    yield client
    await client.close()
