from pydantic_settings import BaseSettings, SettingsConfigDict

from duelvault.models.card import Ruleset
from duelvault.services.reconciliation import TruncationPolicy


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(env_file=".env")

    app_name: str = "DuelVault"
    debug: bool = False

    database_url: str = "postgresql+asyncpg://localhost:5432/duelvault"

    anthropic_api_key: str = ""
    proposal_model: str = "claude-sonnet-4-20250514"
    proposal_max_tokens: int = 8192

    # Hard cap on automated-proposal calls per process (reset by an operator)
    proposal_max_calls: int = 5

    default_ruleset: Ruleset = Ruleset.TCG

    # Which candidates survive when a reconciled section overflows
    truncation_policy: TruncationPolicy = TruncationPolicy.INSERTION_ORDER


settings = Settings()
