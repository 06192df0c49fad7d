"""Settings via pydantic-settings with CMSAI_ env prefix.

Provider credentials use validation_alias so the conventional unprefixed
variables (ANTHROPIC_API_KEY, OPENAI_API_KEY, ...) are picked up directly.
"""

from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(RuntimeError):
    """Missing credential, unknown model or otherwise unusable configuration."""


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="CMSAI_", env_file=".env", extra="ignore")

    # Credentials
    anthropic_api_key: str = Field("", validation_alias="ANTHROPIC_API_KEY")
    openai_api_key: str = Field("", validation_alias="OPENAI_API_KEY")
    gemini_api_key: str = Field("", validation_alias="GEMINI_API_KEY")
    tavily_api_key: str = Field("", validation_alias="TAVILY_API_KEY")

    # Provider endpoints and models
    anthropic_model: str = "claude-3-haiku-20240307"
    openai_base_url: str = "https://api.openai.com/v1"
    ollama_base_url: str = "http://host.docker.internal:11434/v1"
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    max_tokens: int = 4096
    temperature: float = 1.0

    # None keeps the transport default (no internal deadline)
    request_timeout: float | None = None

    # Client-side throttling, 0 disables
    requests_per_minute: int = 50
    tokens_per_minute: int = 0

    # Tool workspace
    workspace_dir: str = "."
    theme_folder: str = "themes/custom"
    tavily_url: str = "https://api.tavily.com/search"

    # Chat
    default_model: str = "claude3"
    system_prompt_path: str | None = None
    automode_max_iterations: int = 25
    automode_exit_phrase: str = "AUTOMODE_COMPLETE"

    log_level: str = "INFO"

    @model_validator(mode="after")
    def _validate_limits(self) -> "Settings":
        if self.automode_max_iterations < 1:
            raise ValueError("automode_max_iterations must be >= 1")
        if not self.automode_exit_phrase:
            raise ValueError("automode_exit_phrase cannot be empty")
        return self


@lru_cache
def get_settings() -> Settings:
    """Get or create the process-wide settings instance."""
    return Settings()
