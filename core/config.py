from dataclasses import dataclass

from pydantic import field_validator
from pydantic_settings import BaseSettings


def _strip_inline_comment(value: str) -> str:
    """Strip trailing inline comments that python-dotenv keeps for unquoted values."""
    idx = value.find(" #")
    if idx != -1:
        value = value[:idx]
    return value.strip()


class Settings(BaseSettings):
    anthropic_api_key: str = "test-key"

    @field_validator("anthropic_api_key", mode="before")
    @classmethod
    def clean_api_key(cls, v: str) -> str:
        if isinstance(v, str):
            return _strip_inline_comment(v)
        return v

    database_url: str = "sqlite+aiosqlite:///./flight_search.db"
    use_real_apis: bool = False
    log_level: str = "INFO"

    # Extraction model
    extraction_model: str = "claude-opus-4-6"
    extraction_temperature: float = 0.0
    extraction_max_tokens: int = 1024
    history_window: int = 20

    # Booking rules
    min_advance_days: int = 14

    # URL generation
    booking_base_url: str = "https://www.example-flights.com/search"
    share_base_url: str = "https://www.example-flights.com/s"
    utm_source: str = "chat"
    utm_medium: str = "ai"
    utm_campaign: str = "natural_language_search"

    # CORS
    allowed_origins: str = "http://localhost:3000,http://127.0.0.1:3000"

    model_config = {"env_file": ".env", "extra": "ignore"}

    def allowed_origin_list(self) -> list[str]:
        return [o.strip() for o in self.allowed_origins.split(",") if o.strip()]

    def default_attribution(self) -> dict:
        return {
            "utm_source": self.utm_source,
            "utm_medium": self.utm_medium,
            "utm_campaign": self.utm_campaign,
        }


@dataclass(frozen=True)
class ExtractionConfig:
    """Model settings handed to the extractor at construction time."""

    model: str
    temperature: float = 0.0
    max_tokens: int = 1024
    history_window: int = 20

    @classmethod
    def from_settings(cls, s: "Settings") -> "ExtractionConfig":
        return cls(
            model=s.extraction_model,
            temperature=s.extraction_temperature,
            max_tokens=s.extraction_max_tokens,
            history_window=s.history_window,
        )


settings = Settings()
