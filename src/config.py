"""Configuration management using Pydantic settings."""
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Application Settings
    environment: str = "development"
    port: int = 8000
    host: str = "0.0.0.0"
    log_level: str = "INFO"
    enable_file_logging: bool = True
    product_name: str = "DocSync"

    # GitHub
    github_api_url: str = "https://api.github.com"
    github_default_branch: str = "main"
    github_request_timeout: float = 15.0
    github_webhook_secret: str = ""

    # Intent classification (LLM fallback)
    anthropic_api_key: str = ""
    intent_llm_model: str = "claude-3-5-haiku-20241022"
    intent_llm_temperature: float = 0.0
    intent_llm_max_tokens: int = 20
    enable_llm_intent_fallback: bool = True

    # Conversation rendering
    max_listed_repos: int = 20
    max_listed_files: int = 15

    @property
    def llm_fallback_available(self) -> bool:
        """Whether unclassified messages can be sent to the LLM classifier."""
        return self.enable_llm_intent_fallback and bool(self.anthropic_api_key)

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment.lower() == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development."""
        return self.environment.lower() == "development"


# Global settings instance
settings = Settings()
