from __future__ import annotations

import json
from functools import lru_cache
from typing import Annotated, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from apscheduler.triggers.cron import CronTrigger
from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode

load_dotenv()

KNOWN_PROVIDERS = ("sncf", "trainline")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Polling
    poll_schedule: str = Field("*/30 * * * *", alias="POLL_SCHEDULE")
    poll_delay_s: float = Field(5.0, alias="POLL_DELAY_S")
    lookahead_days: int = Field(30, alias="LOOKAHEAD_DAYS")
    disable_polling: bool = Field(False, alias="DISABLE_POLLING")
    providers: Annotated[List[str], NoDecode] = Field(
        default_factory=lambda: ["trainline", "sncf"], alias="PROVIDERS"
    )
    timezone: str = Field("Europe/Paris", alias="TIMEZONE")
    request_timeout_s: float = Field(15.0, alias="REQUEST_TIMEOUT_S")
    passenger_birth_date: str = Field("1996-08-27", alias="PASSENGER_BIRTH_DATE")

    # SNCF Connect
    sncf_base_url: str = Field("https://www.sncf-connect.com", alias="SNCF_BASE_URL")
    sncf_api_url: str = Field(
        "https://www.sncf-connect.com/bff/api/v1/itineraries",
        alias="SNCF_API_URL",
    )
    sncf_api_key: str = Field("", alias="SNCF_API_KEY")

    # Trainline
    trainline_base_url: str = Field(
        "https://www.thetrainline.com", alias="TRAINLINE_BASE_URL"
    )
    trainline_api_url: str = Field(
        "https://www.thetrainline.com/api/journey-search/",
        alias="TRAINLINE_API_URL",
    )
    trainline_card_id: str = Field("", alias="TRAINLINE_CARD_ID")
    trainline_card_type_id: str = Field("", alias="TRAINLINE_CARD_TYPE_ID")
    trainline_version: str = Field("4.6.22225", alias="TRAINLINE_VERSION")

    # E-mail
    smtp_host: str = Field("localhost", alias="SMTP_HOST")
    smtp_port: int = Field(465, alias="SMTP_PORT")
    smtp_user: str = Field("", alias="SMTP_USER")
    smtp_pass: str = Field("", alias="SMTP_PASS")
    smtp_use_tls: bool = Field(False, alias="SMTP_USE_TLS")
    email_from: str = Field("", alias="EMAIL_FROM")

    # Logging
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_file: Optional[str] = Field(None, alias="LOG_FILE")

    @field_validator("poll_schedule")
    @classmethod
    def _valid_crontab(cls, v: str) -> str:
        CronTrigger.from_crontab(v)
        return v

    @field_validator("poll_delay_s")
    @classmethod
    def _delay_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("POLL_DELAY_S must not be negative")
        return v

    @field_validator("lookahead_days")
    @classmethod
    def _lookahead_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("LOOKAHEAD_DAYS must be greater than 0")
        return v

    @field_validator("providers", mode="before")
    @classmethod
    def _split_providers(cls, v):
        if isinstance(v, str):
            if v.strip().startswith("["):
                v = json.loads(v)
            else:
                v = [p.strip() for p in v.split(",")]
            v = [p for p in v if p]
        return [str(p).strip().lower() for p in v]

    @field_validator("providers")
    @classmethod
    def _known_providers(cls, v: List[str]) -> List[str]:
        if not v:
            raise ValueError("PROVIDERS must name at least one provider")
        unknown = [p for p in v if p not in KNOWN_PROVIDERS]
        if unknown:
            raise ValueError(f"Unknown providers: {', '.join(unknown)}")
        return v

    @field_validator("timezone")
    @classmethod
    def _valid_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except ZoneInfoNotFoundError as exc:
            raise ValueError(f"Unknown timezone {v!r}") from exc
        return v

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


@lru_cache()
def get_settings() -> Settings:
    """Return application settings loaded from the environment."""
    return Settings()  # type: ignore[call-arg]


__all__ = ["KNOWN_PROVIDERS", "Settings", "get_settings"]
