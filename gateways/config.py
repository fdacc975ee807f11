from functools import lru_cache

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigError
from .models import Credentials
from .transport import DEFAULT_TIMEOUT


class Settings(BaseSettings):
    """Gateway credentials loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=False, extra="ignore"
    )

    TREXLE_API_KEY: SecretStr | None = None
    TREXLE_DEFAULT_CURRENCY: str = "USD"
    STRIPE_SECRET_KEY: SecretStr | None = None
    STRIPE_DEFAULT_CURRENCY: str = "USD"
    HTTP_TIMEOUT: float = DEFAULT_TIMEOUT

    def credentials_for(self, gateway: str) -> Credentials:
        """Resolve the credentials for ``gateway`` or fail before any request."""
        prefix = {"trexle": "TREXLE", "stripe": "STRIPE"}.get(gateway.lower())
        if prefix is None:
            raise ConfigError(f"No credentials configured for gateway {gateway!r}")

        key_field = "TREXLE_API_KEY" if prefix == "TREXLE" else "STRIPE_SECRET_KEY"
        api_key = getattr(self, key_field)
        if api_key is None or not api_key.get_secret_value().strip():
            raise ConfigError(f"{key_field} is not set")

        return Credentials(
            api_key=api_key,
            default_currency=getattr(self, f"{prefix}_DEFAULT_CURRENCY").upper(),
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached Settings instance."""
    return Settings()
