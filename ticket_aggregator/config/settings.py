"""
Application settings management using Pydantic.
"""
from functools import lru_cache
from typing import List, Optional

from pydantic import Field, field_validator, model_validator, ValidationInfo
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings model with environment variable support.

    Settings will be loaded from environment variables or .env file.
    Field names double as (case-insensitive) environment variable names.
    """
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Project info
    project_name: str = "Ticket Aggregator"
    version: str = "1.0.0"

    # Logging
    log_level: str = "INFO"
    log_dir: str = "logs"

    # Database Settings
    db_host: str = "localhost"
    db_port: int = 5432
    db_name: str = "tickets"
    db_user: str = "postgres"
    db_password: str = ""
    db_uri: Optional[str] = Field(default=None, validate_default=True)
    db_connect_retries: int = 3

    # Event matching
    match_threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    name_weight: float = 0.4
    venue_weight: float = 0.3
    date_weight: float = 0.3
    date_penalty_per_day: float = 0.02
    max_date_penalty: float = 0.2
    substring_score: float = Field(default=0.8, ge=0.0, le=1.0)
    exact_match_min_venue_score: float = 0.65
    min_name_score: float = 0.65
    min_venue_score: float = 0.65

    # Reconciliation
    retire_on_empty_scrape: bool = False
    default_category: str = "Concert"
    excluded_event_keywords: List[str] = ["parking", "vip package", "meet and greet"]

    @field_validator("log_level", mode="before")
    @classmethod
    def upper_log_level(cls, v):
        return str(v).upper()

    @field_validator("db_uri", mode="after")
    @classmethod
    def assemble_db_uri(cls, v, info: ValidationInfo):
        """Build the database URI from individual components."""
        if v:
            return v

        values = info.data
        host = values.get("db_host")
        port = values.get("db_port")
        user = values.get("db_user")
        password = values.get("db_password")
        name = values.get("db_name")

        if all([host, port, user, name]):
            return f"postgresql://{user}:{password}@{host}:{port}/{name}"

        return None

    @model_validator(mode="after")
    def check_venue_thresholds(self):
        """The exact-match venue bar may not sit below the venue gate."""
        if self.exact_match_min_venue_score < self.min_venue_score:
            raise ValueError(
                "exact_match_min_venue_score must be at least min_venue_score "
                f"({self.exact_match_min_venue_score} < {self.min_venue_score})"
            )
        return self


@lru_cache()
def get_settings() -> Settings:
    """Return the process-wide settings, loaded once."""
    return Settings()
