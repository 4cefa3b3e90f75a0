"""
HashiCorp Vault (KV v2) lookups for record-store credentials.
"""

import logging
import os
import re
from typing import Any, Optional

import requests

from .retry import retry_with_backoff

logger = logging.getLogger(__name__)

SAFE_PATH = re.compile(r"^[a-zA-Z0-9/_-]+$")

# Fields each dialect's secret must carry
REQUIRED_FIELDS = {
    "postgresql": ("host", "database", "username", "password"),
    "sqlserver": ("server", "database", "username", "password"),
}


class VaultClient:
    """
    Minimal Vault KV v2 client

    Secrets are read from ``<mount>/data/<path>``; the default layout keeps one
    secret per dialect under ``secret/datarecon/<dialect>``.
    """

    def __init__(
        self,
        vault_addr: Optional[str] = None,
        vault_token: Optional[str] = None,
        base_path: Optional[str] = None,
        timeout: float = 10.0,
    ):
        self.vault_addr = (vault_addr or os.getenv("VAULT_ADDR") or "").rstrip("/")
        self.vault_token = vault_token or os.getenv("VAULT_TOKEN")
        self.base_path = base_path or os.getenv("DATARECON_VAULT_PATH", "secret/datarecon")
        self.timeout = timeout

        if not self.vault_addr:
            raise ValueError("Vault address not provided. Set VAULT_ADDR or pass vault_addr.")
        if not self.vault_token:
            raise ValueError("Vault token not provided. Set VAULT_TOKEN or pass vault_token.")

        self.headers = {"X-Vault-Token": self.vault_token}

    @staticmethod
    def _kv2_path(secret_path: str) -> str:
        if ".." in secret_path or not SAFE_PATH.match(secret_path):
            raise ValueError(f"Invalid secret path: {secret_path!r}")
        if "/data/" in secret_path:
            return secret_path
        mount, _, rest = secret_path.partition("/")
        return f"{mount}/data/{rest}" if rest else f"{mount}/data"

    @retry_with_backoff(
        max_retries=2,
        base_delay=0.5,
        retry_if=lambda e: isinstance(e, (requests.ConnectionError, requests.Timeout)),
    )
    def get_secret(self, secret_path: str) -> dict[str, Any]:
        """
        Fetch the data of one KV v2 secret

        Raises:
            ValueError: Bad path, missing or empty secret
            requests.RequestException: Vault unreachable or returned an error
        """
        kv_path = self._kv2_path(secret_path)
        response = requests.get(
            f"{self.vault_addr}/v1/{kv_path}", headers=self.headers, timeout=self.timeout
        )
        if response.status_code == 404:
            raise ValueError(f"Secret not found at path: {kv_path}")
        response.raise_for_status()

        secret_data = response.json().get("data", {}).get("data", {})
        if not secret_data:
            raise ValueError(f"No data found in secret at path: {kv_path}")
        return secret_data

    def get_database_credentials(self, dialect: str) -> dict[str, Any]:
        """Fetch and validate connection credentials for 'postgresql' or 'sqlserver'."""
        if dialect not in REQUIRED_FIELDS:
            raise ValueError(
                f"Unsupported dialect: {dialect}. Must be one of {sorted(REQUIRED_FIELDS)}."
            )

        secret = self.get_secret(f"{self.base_path}/{dialect}")
        missing = [name for name in REQUIRED_FIELDS[dialect] if name not in secret]
        if missing:
            raise ValueError(f"Missing required fields in secret: {', '.join(missing)}")

        if dialect == "postgresql":
            secret.setdefault("port", 5432)

        logger.info(f"Fetched {dialect} credentials from Vault")
        return secret
