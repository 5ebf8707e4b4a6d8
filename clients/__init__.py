# Infrastructure clients
from clients.vault_client import (
    VaultClient,
    get_database_url,
    get_valkey_url,
    get_email_config,
    get_signing_key,
)
from clients.postgres_client import PostgresClient
from clients.valkey_client import ValkeyClient
from clients.memory_client import InMemoryValkeyClient
from clients.email_client import EmailGatewayClient, EmailGatewayError
