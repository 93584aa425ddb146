"""
Configuration — connection and change-feed option models.

Environment variable reads live in adapters.cosmos_config; this module
turns them into validated pydantic models.

CosmosOptions doubles as the connection-cache key: two option sets share
a CosmosClient only when they are the same object.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from azure.identity import DefaultAzureCredential
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from cosmos_resources.adapters import cosmos_config


# ---------------------------------------------------------------------------
# Shared credential (lazy-initialised to avoid probing at import time)
# ---------------------------------------------------------------------------

_credential = None


def get_credential():
    """Return a cached DefaultAzureCredential (lazy-initialised)."""
    global _credential
    if _credential is None:
        _credential = DefaultAzureCredential()
    return _credential


# ---------------------------------------------------------------------------
# Connection options
# ---------------------------------------------------------------------------


class CosmosOptions(BaseModel):
    """Options for one Cosmos account + database.

    Either ``account_key`` or ``credential`` must be set; when both are
    present the token credential wins.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    account_endpoint: str
    account_key: str | None = None
    credential: Any | None = None
    database_name: str
    database_throughput: int = Field(default=1000, gt=0)
    continuation_token_limit_kb: int | None = Field(default=None, ge=0)
    serializer_options: dict[str, Any] = Field(default_factory=dict)

    @field_validator("account_endpoint", "database_name")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be empty")
        return v

    @model_validator(mode="after")
    def _key_or_credential(self) -> "CosmosOptions":
        if not self.account_key and self.credential is None:
            raise ValueError("Either account_key or credential must be configured.")
        return self

    @property
    def auth(self) -> Any:
        """Credential argument for CosmosClient (token credential or master key)."""
        return self.credential if self.credential is not None else self.account_key

    def use_emulator(self) -> "CosmosOptions":
        """Return a copy pointed at the local Cosmos DB emulator."""
        return self.model_copy(update={
            "account_endpoint": cosmos_config.COSMOS_EMULATOR_ENDPOINT,
            "account_key": cosmos_config.COSMOS_EMULATOR_KEY,
            "credential": None,
        })

    @classmethod
    def from_env(cls) -> "CosmosOptions":
        """Build options from COSMOS_NOSQL_* env vars.

        Falls back to DefaultAzureCredential when no key is configured.
        """
        limit = cosmos_config.COSMOS_CONTINUATION_TOKEN_LIMIT_KB
        key = cosmos_config.COSMOS_NOSQL_KEY or None
        return cls(
            account_endpoint=cosmos_config.COSMOS_NOSQL_ENDPOINT,
            account_key=key,
            credential=None if key else get_credential(),
            database_name=cosmos_config.COSMOS_NOSQL_DATABASE,
            database_throughput=cosmos_config.COSMOS_NOSQL_DATABASE_THROUGHPUT,
            continuation_token_limit_kb=int(limit) if limit else None,
        )


# ---------------------------------------------------------------------------
# Change feed options
# ---------------------------------------------------------------------------


class ChangeFeedOptions(BaseModel):
    """Polling and dispatch settings for a change-feed listener."""

    # Seconds to wait before polling again; applies only after an empty poll.
    feed_poll_delay: float = Field(default=1.0, ge=0)
    max_item_count: int = Field(default=100, ge=1)
    # Only used when no lease exists yet. None means "from the beginning".
    start_time: datetime | None = None
    max_degree_of_parallelism: int = Field(default=1, ge=1)

    @classmethod
    def from_env(cls) -> "ChangeFeedOptions":
        return cls(
            feed_poll_delay=cosmos_config.COSMOS_FEED_POLL_DELAY_MS / 1000,
            max_item_count=cosmos_config.COSMOS_FEED_MAX_ITEMS,
            max_degree_of_parallelism=cosmos_config.COSMOS_FEED_MAX_PARALLELISM,
        )
