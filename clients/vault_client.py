"""
Secrets for the auth service, read from HashiCorp Vault (KV v2).

Login is AppRole with credentials from the environment. Secret reads are
confined to the ``spa-auth/`` tree; a missing path, missing field or
denied read is fatal at startup rather than papered over with defaults.
"""

import logging
import os
from typing import Dict

import hvac
from hvac.exceptions import Forbidden, InvalidPath, Unauthorized

logger = logging.getLogger(__name__)

SECRET_ROOT = "spa-auth"

EMAIL_FIELDS = ("gateway_url", "api_key", "hmac_secret")

_shared_client: "VaultClient | None" = None
_resolved: Dict[str, str] = {}


class VaultClient:
    """AppRole-authenticated reader for secrets under SECRET_ROOT."""

    def __init__(
        self,
        vault_addr: str | None = None,
        vault_namespace: str | None = None,
        role_id: str | None = None,
        secret_id: str | None = None,
    ):
        """
        Log in to Vault.

        Arguments fall back to VAULT_ADDR, VAULT_NAMESPACE, VAULT_ROLE_ID
        and VAULT_SECRET_ID.

        Raises:
            ValueError: Address or AppRole credentials not configured.
            PermissionError: Vault rejected the AppRole login.
        """
        self.vault_addr = vault_addr or os.getenv("VAULT_ADDR")
        self.vault_namespace = vault_namespace or os.getenv("VAULT_NAMESPACE")
        role_id = role_id or os.getenv("VAULT_ROLE_ID")
        secret_id = secret_id or os.getenv("VAULT_SECRET_ID")

        if not self.vault_addr:
            raise ValueError("VAULT_ADDR environment variable is required")
        if not role_id or not secret_id:
            raise ValueError("VAULT_ROLE_ID and VAULT_SECRET_ID environment variables are required")

        if self.vault_namespace:
            self.client = hvac.Client(url=self.vault_addr, namespace=self.vault_namespace)
        else:
            self.client = hvac.Client(url=self.vault_addr)

        self._login(role_id, secret_id)
        logger.info(f"Vault session established with {self.vault_addr}")

    def _login(self, role_id: str, secret_id: str) -> None:
        try:
            result = self.client.auth.approle.login(role_id=role_id, secret_id=secret_id)
            self.client.token = result["auth"]["client_token"]
        except Exception as e:
            logger.error(f"AppRole authentication failed: {e}")
            raise PermissionError(f"AppRole authentication failed: {e}")

        if not self.client.is_authenticated():
            raise PermissionError("Vault authentication failed")

    def read_secret(self, path: str) -> Dict[str, str]:
        """
        All fields of ``SECRET_ROOT/path``.

        Raises:
            PermissionError: Path missing or not readable with this role.
        """
        full_path = f"{SECRET_ROOT}/{path}"
        try:
            response = self.client.secrets.kv.v2.read_secret_version(
                path=full_path, raise_on_deleted_version=True
            )
        except InvalidPath:
            logger.error(f"Secret path not found: {full_path}")
            raise PermissionError(f"Secret path '{full_path}' not found in Vault")
        except (Unauthorized, Forbidden) as e:
            logger.error(f"Access denied to secret {full_path}: {e}")
            raise PermissionError(f"Access denied to secret '{full_path}': {e}")
        return response["data"]["data"]

    def get_secret(self, path: str, field: str) -> str:
        """
        One field of ``SECRET_ROOT/path``.

        Raises:
            PermissionError: See read_secret.
            KeyError: Secret exists but lacks the field.
        """
        data = self.read_secret(path)
        try:
            return data[field]
        except KeyError:
            raise KeyError(
                f"Field '{field}' not found in secret '{SECRET_ROOT}/{path}'. "
                f"Available: {', '.join(data)}"
            )


def _secret(path: str, field: str) -> str:
    """Read through a process-wide client, remembering every value."""
    global _shared_client
    key = f"{path}/{field}"
    if key not in _resolved:
        if _shared_client is None:
            _shared_client = VaultClient()
        _resolved[key] = _shared_client.get_secret(path, field)
    return _resolved[key]


def reset_secret_cache() -> None:
    """Forget the shared client and every resolved secret."""
    global _shared_client
    _shared_client = None
    _resolved.clear()


def get_database_url() -> str:
    return _secret("database", "url")


def get_valkey_url() -> str:
    return _secret("valkey", "url")


def get_email_config() -> Dict[str, str]:
    """Keyword arguments for EmailGatewayClient."""
    return {field: _secret("email", field) for field in EMAIL_FIELDS}


def get_signing_key() -> str:
    """HMAC key for email verification links."""
    return _secret("signing", "key")
