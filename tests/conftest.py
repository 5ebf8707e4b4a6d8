"""Shared test fixtures for the auth service test suite.

Everything runs against in-memory stores and a frozen clock: no Postgres,
Valkey or email gateway is needed. Postgres/Valkey/gateway adapters are
tested separately against mocks.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient

from api.app import create_app
from auth.config import AuthConfig
from auth.hashing import PasswordHasher
from auth.memory import InMemoryAuthStore
from auth.rate_limiter import RateLimiter
from auth.service import AuthService
from auth.session import SessionManager
from auth.tokens import TokenIssuer, VerificationLinkSigner
from clients.email_client import EmailGatewayClient
from clients.memory_client import InMemoryValkeyClient
from utils.user_context import clear_current_account_id


# =============================================================================
# TEST CONSTANTS
# =============================================================================

TEST_PASSWORD = "Password123!"
TEST_EMAIL = "john@example.com"
TEST_NAME = "John Doe"
TEST_IP = "192.168.1.10"
SIGNING_KEY = "test-signing-key"


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float = 0, **kwargs) -> None:
        self.now += timedelta(seconds=seconds, **kwargs)


# =============================================================================
# CORE FIXTURES
# =============================================================================


@pytest.fixture(autouse=True)
def reset_account_context():
    """Ensure clean account context before and after each test."""
    clear_current_account_id()
    yield
    clear_current_account_id()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def config() -> AuthConfig:
    """Production defaults except the cheapest bcrypt cost and plain-HTTP cookies."""
    return AuthConfig(
        bcrypt_rounds=4,
        session_cookie_secure=False,
        app_base_url="https://app.test",
        api_base_url="https://app.test/api",
        app_name="Test App",
    )


@pytest.fixture(scope="session")
def hasher() -> PasswordHasher:
    return PasswordHasher(rounds=4)


@pytest.fixture
def valkey(clock) -> InMemoryValkeyClient:
    return InMemoryValkeyClient(clock=clock)


@pytest.fixture
def store(clock) -> InMemoryAuthStore:
    return InMemoryAuthStore(clock=clock)


@pytest.fixture
def rate_limiter(valkey, config) -> RateLimiter:
    return RateLimiter(valkey, config)


@pytest.fixture
def session_manager(valkey, config, clock) -> SessionManager:
    return SessionManager(valkey, config, clock=clock)


@pytest.fixture
def token_issuer(store, clock) -> TokenIssuer:
    return TokenIssuer(store, clock=clock)


@pytest.fixture
def link_signer(config, clock) -> VerificationLinkSigner:
    return VerificationLinkSigner(SIGNING_KEY, config, clock=clock)


@pytest.fixture
def mock_email_client():
    """Mock email client - no actual emails sent in tests."""
    return Mock(spec=EmailGatewayClient)


@pytest.fixture
def auth_service(
    config, store, hasher, token_issuer, link_signer, session_manager, rate_limiter, mock_email_client
) -> AuthService:
    return AuthService(
        config=config,
        store=store,
        hasher=hasher,
        token_issuer=token_issuer,
        link_signer=link_signer,
        session_manager=session_manager,
        rate_limiter=rate_limiter,
        email_client=mock_email_client,
    )


@pytest.fixture
def make_account(store, hasher):
    """Insert an account directly, bypassing registration limits and email."""

    def _make(email=TEST_EMAIL, password=TEST_PASSWORD, name=TEST_NAME, verified=False):
        account = store.create(name=name, email=email, password_hash=hasher.hash(password))
        if verified:
            store.mark_email_verified(account.id)
            account = store.find_by_id(account.id)
        return account

    return _make


# =============================================================================
# HTTP FIXTURES
# =============================================================================


@pytest.fixture
def app(auth_service, session_manager, config):
    return create_app(auth_service, session_manager, config)


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


@pytest.fixture
def login(client):
    """Log the client in and return the session token it now carries."""

    def _login(email=TEST_EMAIL, password=TEST_PASSWORD):
        response = client.post("/api/login", json={"email": email, "password": password})
        assert response.status_code == 200, response.json()
        return client.cookies.get("session_token")

    return _login
