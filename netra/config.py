"""
Service endpoints and credentials for NETRA.

Values default to environment variables so the same install can point at a
local vLLM box or a hosted OpenAI-compatible endpoint without code changes.
"""

import os

from pydantic import BaseModel, Field


def _split_keys(raw: str) -> list[str]:
    return [k.strip() for k in raw.split(",") if k.strip()]


class VisionServiceConfig(BaseModel):
    """Vision/language model endpoint (OpenAI-compatible API)."""

    base_url: str = Field(
        default_factory=lambda: os.environ.get("NETRA_VLM_HOST", "http://localhost:8000/v1")
    )
    model: str = Field(
        default_factory=lambda: os.environ.get("NETRA_VLM_MODEL", "Qwen/Qwen2.5-VL-7B-Instruct")
    )
    location_model: str | None = Field(
        default_factory=lambda: os.environ.get("NETRA_LOCATION_MODEL")
    )
    # Rotated round-robin, one per request
    api_keys: list[str] = Field(
        default_factory=lambda: _split_keys(os.environ.get("NETRA_VLM_API_KEYS", "not-needed"))
    )
    timeout: float = Field(default=30.0)
    detect_max_tokens: int = Field(default=500)
    identify_max_tokens: int = Field(default=300)
    query_max_tokens: int = Field(default=150)


class TTSServiceConfig(BaseModel):
    """Speech server used by the remote narrator."""

    host: str = Field(
        default_factory=lambda: os.environ.get("NETRA_TTS_HOST", "localhost")
    )
    port: int = Field(
        default_factory=lambda: int(os.environ.get("NETRA_TTS_PORT", "8080"))
    )
    voice: str = Field(default="en_US-amy-medium")
    language: str = Field(default="English")
    timeout: float = Field(default=60.0)

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"


class LocationServiceConfig(BaseModel):
    """Where position fixes come from."""

    url: str = Field(
        default_factory=lambda: os.environ.get("NETRA_GEOIP_URL", "http://ip-api.com/json/")
    )
    timeout: float = Field(default=10.0)


class Config(BaseModel):
    """Main configuration."""

    vision: VisionServiceConfig = Field(default_factory=VisionServiceConfig)
    tts: TTSServiceConfig = Field(default_factory=TTSServiceConfig)
    location: LocationServiceConfig = Field(default_factory=LocationServiceConfig)


# Global config instance
_config: Config | None = None


def get_config() -> Config:
    """Get the global configuration."""
    global _config
    if _config is None:
        _config = Config()
    return _config


def set_config(config: Config) -> None:
    """Set the global configuration."""
    global _config
    _config = config
