import os
from getpass import getpass
from pathlib import Path

import hvac

DEFAULT_VAULT_ADDR = "http://localhost:8200"
# This file is also used by the vault CLI to cache the token
VAULT_TOKEN_PATH = Path.home() / ".vault-token"


def get_vault_addr(vault_addr: str = None):
    """
    Get the Vault address from various sources.
    """

    if vault_addr:
        return vault_addr

    if os.environ.get('VAULT_ADDR'):
        return os.environ['VAULT_ADDR']

    return DEFAULT_VAULT_ADDR

def get_vault_client(vault_addr: str = None, token: str = None):
    vault_addr = get_vault_addr(vault_addr)

    client = hvac.Client(url=vault_addr)
    if not client.sys.is_initialized():
        raise hvac.exceptions.VaultNotInitialized(f"Vault at {vault_addr} is not initialized. Please initialize it first.")
    if client.sys.is_sealed():
        raise hvac.exceptions.VaultDown(f"Vault at {vault_addr} is sealed. Please unseal it first.")

    for candidate in (token, os.environ.get("VAULT_TOKEN")):
        if candidate:
            client.token = candidate
            if client.is_authenticated():
                return client

    if VAULT_TOKEN_PATH.exists():
        client.token = VAULT_TOKEN_PATH.read_text().strip()
        if client.is_authenticated():
            return client

    client.token = getpass("Please enter your Vault token (will be hidden): ")
    if not client.is_authenticated():
        raise hvac.exceptions.Forbidden(f"Failed to authenticate to Vault at {vault_addr}")

    # cache the token
    VAULT_TOKEN_PATH.write_text(client.token)

    return client

def read_kv_secret(client: hvac.Client, path: str) -> dict:
    return client.secrets.kv.v2.read_secret(path=path)['data']['data']

def read_kv_secret_or_empty(client: hvac.Client, path: str) -> dict:
    try:
        return read_kv_secret(client, path)
    except hvac.exceptions.InvalidPath:
        return {}

def write_kv_secret(client: hvac.Client, path: str, secret: dict):
    client.secrets.kv.v2.create_or_update_secret(path=path, secret=dict(secret))
