from __future__ import annotations

from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Upstream (Anthropic Messages API)
    anthropic_api_key: Optional[str] = Field(default=None)
    anthropic_base_url: Optional[str] = Field(
        default=None,
        description="Override for the Anthropic API base URL; SDK default when unset.",
    )

    # The model sent upstream and the model reported back to callers are
    # configured separately; they were never the same string in production.
    request_model: str = Field(default="claude-3-5-sonnet-20241022")
    reported_model: str = Field(default="claude-sonnet-4-20250514")

    # Generation
    max_tokens: int = Field(
        default=100000,
        description="Ceiling applied to every upstream call, also the default.",
    )
    default_temperature: float = Field(default=0.7)

    # Bound on the upstream call plus stream consumption. None disables it.
    stream_timeout_seconds: Optional[float] = Field(default=None)

    # CORS
    cors_allow_origins: List[str] = Field(
        default_factory=lambda: ["http://localhost:3000"]
    )

    log_level: str = Field(default="INFO")

    @property
    def is_api_key_configured(self) -> bool:
        return bool(self.anthropic_api_key)
