"""
icebreaker/core/secrets.py

Purpose: Secrets provider

- Supplies the Cosmos DB account key to the connection manager
- The key is opaque to the data layer
"""

from typing import Optional, Protocol

from icebreaker.core.config import Settings, settings


class SecretsProvider(Protocol):
    """Anything that can hand out the Cosmos DB key."""

    @property
    def cosmos_db_key(self) -> str: ...


class SettingsSecretsProvider:
    """
    Reads secrets from application settings (environment or .env file).
    """

    def __init__(self, config: Optional[Settings] = None):
        self._settings = config or settings

    @property
    def cosmos_db_key(self) -> str:
        key = self._settings.COSMOS_DB_KEY
        if not key:
            raise ValueError("COSMOS_DB_KEY is not configured")
        return key
