"""
Agent Configuration — API credentials, endpoint, and local state paths.

Settings are read from the process environment first, then from a
``.env`` file in the working directory. Both the short and the
``PREDICTME_AGENT_`` prefixed variable names are accepted.
"""

from functools import lru_cache

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_API_URL = "https://api.predictme.me/api/v1/agent"
DEFAULT_NONCE_PATH = ".predictme-nonce"


class AgentSettings(BaseSettings):
    """Settings shared by the client, the orchestrator, and the CLI."""

    model_config = SettingsConfigDict(
        env_file=(".env", ".env.local"),
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # ── API ──────────────────────────────────────────────────────────
    api_key: str = Field(
        default="",
        validation_alias=AliasChoices("PREDICTME_API_KEY", "PREDICTME_AGENT_API_KEY"),
    )
    api_url: str = Field(
        default=DEFAULT_API_URL,
        validation_alias=AliasChoices("PREDICTME_API_URL", "PREDICTME_AGENT_API_URL"),
    )

    # ── Local state ──────────────────────────────────────────────────
    nonce_path: str = Field(
        default=DEFAULT_NONCE_PATH,
        validation_alias=AliasChoices("PREDICTME_NONCE_PATH"),
    )

    # ── Logging ──────────────────────────────────────────────────────
    log_level: str = Field(default="INFO", validation_alias=AliasChoices("PREDICTME_LOG_LEVEL"))
    log_json: bool = Field(default=False, validation_alias=AliasChoices("PREDICTME_LOG_JSON"))


@lru_cache
def get_settings() -> AgentSettings:
    """Singleton accessor — parsed once, cached forever."""
    return AgentSettings()
