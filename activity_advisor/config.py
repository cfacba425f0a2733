"""Application configuration pulled from environment variables via pydantic."""
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from utils.logging_utils import get_tagged_logger
logger = get_tagged_logger(__name__, tag="config")


class Settings(BaseSettings):
    """Environment-driven configuration for the activity advisor."""
    model_config = SettingsConfigDict(env_prefix="ADVISOR_", extra="ignore")

    forecast_source: str = "open_meteo"
    geocoding_base_url: str = "https://geocoding-api.open-meteo.com/v1"
    forecast_base_url: str = "https://api.open-meteo.com/v1"
    # Some geocoding deployments expect `country_Code`; override via env if so.
    geocoding_country_param: str = "country_code"
    geocoding_language: str = "en"
    request_timeout_seconds: float = 10.0
    http_cache_path: str = ".cache"
    http_cache_ttl_seconds: int = 3600
    http_retries: int = 5
    http_backoff_factor: float = 0.2
    results_dir: str = "./results"
    api_key: str | None = None
    log_level: str = "INFO"

    @field_validator("geocoding_base_url", "forecast_base_url", mode="after")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize base URLs to avoid double slashes."""
        return str(v).rstrip("/")


settings = Settings()


if __name__ == "__main__":
    logger.setLevel("DEBUG")
    logger.debug(f"Loaded settings: {settings.model_dump_json(indent=4)}")
