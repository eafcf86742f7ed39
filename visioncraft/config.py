from functools import lru_cache
from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration for the Visioncraft backend."""

    #----------------------------------------------------------
    # Credential
    #----------------------------------------------------------
    gemini_api_key: SecretStr = Field(
        default="",
        description="Gemini API key used when no key is connected at runtime.",
    )

    #----------------------------------------------------------
    # Model settings
    #----------------------------------------------------------
    standard_model_id: str = Field(
        default="gemini-2.5-flash-image",
        description="Free tier image model used for the 'standard' tier.",
    )
    pro_model_id: str = Field(
        default="gemini-3-pro-image-preview",
        description="Billable image model used for the 'pro' tier.",
    )
    pro_image_size: str = Field(
        default="1K",
        description="Output resolution requested from the pro model.",
    )

    #----------------------------------------------------------
    # Retry settings
    #----------------------------------------------------------
    max_retries: int = Field(
        default=3,
        ge=1,
        description="Maximum number of attempts for a rate limited or overloaded call.",
    )
    retry_base_delay: float = Field(
        default=10.0,
        ge=0.0,
        description="Base delay in seconds, doubled after every failed attempt.",
    )

    log_level: str = Field(
        default="INFO",
        description="Root log level applied when the app is started directly.",
    )

    model_config = SettingsConfigDict(
        env_prefix="VISIONCRAFT_",
        env_file=".env",
        env_file_encoding="utf-8",
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()  # type: ignore[call-arg]
