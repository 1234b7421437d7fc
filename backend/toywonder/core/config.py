"""
Configuration module for the ToyWonder AI API.
Loads settings from environment variables.
"""
from typing import List, Literal, Optional
from pydantic_settings import BaseSettings
from functools import lru_cache

from toywonder.core.constants import LimitsConstants


PLACEHOLDER_API_KEY = "dummy_api_key_replace_me"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 5000
    cors_origins: List[str] = ["http://localhost:3000", "http://localhost:5173"]
    log_level: str = "INFO"

    # Catalog source: bundled JSON snapshot or the networked catalog API
    backend_mode: Literal["mock", "networked"] = "mock"
    catalog_api_url: str = "http://localhost:5000"
    catalog_path: Optional[str] = None

    # Gemini Configuration
    gemini_api_key: Optional[str] = None
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    gemini_text_model: str = "gemini-2.0-flash"
    gemini_imagen_model: str = "imagen-3.0-generate-002"
    gemini_image_models: List[str] = [
        "gemini-2.0-flash-preview-image-generation",
        "gemini-2.0-flash-exp",
    ]
    gemini_timeout_seconds: float = LimitsConstants.PROVIDER_TIMEOUT_SECONDS

    # Keyless image rendering (no credential required)
    keyless_image_base_url: str = "https://image.pollinations.ai/prompt"
    keyless_image_timeout_seconds: float = LimitsConstants.KEYLESS_IMAGE_TIMEOUT_SECONDS

    # Conversation
    history_turn_limit: int = LimitsConstants.HISTORY_TURN_LIMIT

    class Config:
        env_file = ".env"
        case_sensitive = False

    @property
    def has_provider_credential(self) -> bool:
        """True when a usable Gemini key is configured."""
        key = (self.gemini_api_key or "").strip()
        return bool(key) and key != PLACEHOLDER_API_KEY


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
