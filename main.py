"""Production entry point.

    uvicorn main:create_production_app --factory

Secrets come from Vault (VAULT_ADDR, VAULT_ROLE_ID, VAULT_SECRET_ID, read
from the environment or a local .env file).
"""

import logging
import os

from dotenv import load_dotenv
from fastapi import FastAPI

from api.app import create_app
from auth.config import AuthConfig
from auth.database import AuthDatabase
from auth.hashing import PasswordHasher
from auth.rate_limiter import RateLimiter
from auth.service import AuthService
from auth.session import SessionManager
from auth.tokens import TokenIssuer, VerificationLinkSigner
from clients.email_client import EmailGatewayClient
from clients.postgres_client import PostgresClient
from clients.valkey_client import ValkeyClient
from clients.vault_client import (
    get_database_url,
    get_email_config,
    get_signing_key,
    get_valkey_url,
)

# Non-secret settings that may come from the environment.
_ENV_SETTINGS = {
    "APP_BASE_URL": "app_base_url",
    "API_BASE_URL": "api_base_url",
    "APP_NAME": "app_name",
    "SESSION_COOKIE_SECURE": "session_cookie_secure",
}


def create_production_app() -> FastAPI:
    """Wire Postgres, Valkey, the email gateway and Vault secrets into the app."""
    load_dotenv()
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = AuthConfig(**{field: os.environ[var] for var, field in _ENV_SETTINGS.items() if var in os.environ})

    store = AuthDatabase(PostgresClient(get_database_url()))
    valkey = ValkeyClient(get_valkey_url())
    session_manager = SessionManager(valkey, config)

    auth_service = AuthService(
        config=config,
        store=store,
        hasher=PasswordHasher(rounds=config.bcrypt_rounds),
        token_issuer=TokenIssuer(store),
        link_signer=VerificationLinkSigner(get_signing_key(), config),
        session_manager=session_manager,
        rate_limiter=RateLimiter(valkey, config),
        email_client=EmailGatewayClient(**get_email_config(), app_name=config.app_name),
    )
    return create_app(auth_service, session_manager, config)
