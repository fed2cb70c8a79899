from typing import Dict, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class MetricsConfig(BaseModel):
    enabled: bool = True
    host: str = "127.0.0.1"
    port: int = 9090


class RelayConfig(BaseSettings):
    model_config = SettingsConfigDict(
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"
    metrics: MetricsConfig = MetricsConfig()

    target_server: str
    regenerate_target: Optional[str] = None
    additional_regenerate_webhook: Optional[str] = None

    webhook_timeout_ms: int = 10000
    webhook_retries: int = 0
    webhook_backoff_ms: int = 200  # per retry, multiplied by the retry number
    webhook_headers: Dict[str, str] = Field(default_factory=dict)
    fire_and_forget: bool = False

    legacy_routes: bool = True
    legacy_capitalize_days: bool = False

    @field_validator(
        "regenerate_target", "additional_regenerate_webhook", mode="before"
    )
    @classmethod
    def _blank_is_unset(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("webhook_timeout_ms")
    @classmethod
    def _positive_timeout(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("webhook_timeout_ms must be greater than 0")
        return value

    @field_validator("webhook_retries", "webhook_backoff_ms")
    @classmethod
    def _non_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError("must not be negative")
        return value

    @property
    def regenerate_url(self) -> str:
        """Primary destination of the batch regenerate action."""
        return self.regenerate_target or self.target_server

    @property
    def webhook_timeout(self) -> float:
        """Per-attempt timeout in seconds."""
        return self.webhook_timeout_ms / 1000

    @property
    def webhook_backoff(self) -> float:
        return self.webhook_backoff_ms / 1000
