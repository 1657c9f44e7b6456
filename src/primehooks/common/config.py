"""primehooks configuration via pydantic-settings."""

import warnings
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

_INSECURE_DEFAULTS = {
    "super_admin_key": "insecure-super-admin-key-change-me",
}


class PrimeHooksSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="PRIMEHOOKS_")

    environment: str = "development"
    log_level: str = "INFO"

    # Database
    db_url: str = "sqlite+aiosqlite:///./data/primehooks.db"

    # API
    api_title: str = "primehooks"
    api_version: str = "0.1.0"
    super_admin_key: str = "insecure-super-admin-key-change-me"
    host: str = "0.0.0.0"
    port: int = 8080
    api_prefix: str = ""
    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:5173"]

    # Outbound calls
    user_agent_product: str = "OrganizePrime"
    user_agent_version: str = "1.0"

    # Webhook defaults
    default_timeout_seconds: int = 30
    default_retry_count: int = 3
    default_rate_limit_per_minute: int = 60

    # Client query layer
    assignment_cache_ttl: int = 300  # seconds

    # Pagination
    default_page_size: int = 50
    max_page_size: int = 200

    @property
    def user_agent(self) -> str:
        return f"{self.user_agent_product}-Webhook/{self.user_agent_version}"

    @property
    def test_user_agent(self) -> str:
        return f"{self.user_agent_product}-Webhook-Test/{self.user_agent_version}"

    def validate_for_production(self) -> None:
        """Raise if insecure defaults are used in non-development environments."""
        insecure_fields = [
            field
            for field, default in _INSECURE_DEFAULTS.items()
            if getattr(self, field) == default
        ]

        if self.environment != "development" and insecure_fields:
            env_vars = ", ".join(f"PRIMEHOOKS_{f.upper()}" for f in insecure_fields)
            raise RuntimeError(
                f"Insecure default values detected in '{self.environment}' environment. "
                f"Set these environment variables to secure values: {env_vars}. "
                "Generate secrets with: python -c \"import secrets; print(secrets.token_urlsafe(48))\""
            )

        if insecure_fields:
            warnings.warn(
                "Using insecure default super-admin key; set PRIMEHOOKS_SUPER_ADMIN_KEY for production",
                UserWarning,
                stacklevel=2,
            )


@lru_cache
def get_settings() -> PrimeHooksSettings:
    settings = PrimeHooksSettings()
    settings.validate_for_production()
    return settings
