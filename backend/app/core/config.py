# backend/app/core/config.py
from decimal import Decimal
import logging
import os
from pathlib import Path
from typing import Dict, Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
import pytz

from .credits import CreditPolicy, ResetPolicy, RolloverPolicy
from .enums import CreditType


def is_running_tests() -> bool:
    """
    Detect if code is running under pytest.

    PYTEST_CURRENT_TEST is set automatically by pytest during test runs, and is
    not expected to be present in production environments.
    """
    return os.getenv("PYTEST_CURRENT_TEST") is not None


logger = logging.getLogger(__name__)

# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = Path(__file__).parent.parent.parent / ".env"  # Goes up to backend/.env
    logger.debug(f"[CONFIG] Looking for .env at: {env_path}")
    load_dotenv(env_path)


class Settings(BaseSettings):
    environment: str = Field(default="development", description="Deployment environment name")

    # Database
    database_url: str = Field(
        default="sqlite:///./practice_space.db",
        description="Primary database URL",
    )
    test_database_url: Optional[str] = Field(
        default=None,
        description="Database URL used by the test-suite when set",
    )
    database_echo: bool = False

    # Background jobs
    redis_url: str = Field(default="redis://localhost:6379/0", description="Celery broker URL")

    # The practice space lives in one place; all wall-clock times are local to it.
    space_timezone: str = Field(default="America/Los_Angeles")

    # Booking rules
    hourly_rate: Decimal = Field(default=Decimal("15.00"), description="Rate for paid hours")
    min_reservation_hours: float = Field(default=1, gt=0)
    max_reservation_hours: float = Field(default=8, gt=0)
    operating_open_hour: int = Field(default=9, ge=0, le=23)
    operating_close_hour: int = Field(default=22, ge=1, le=24)
    minutes_per_block: int = Field(default=30, gt=0, description="Credit block size in minutes")
    close_booking_race: bool = Field(
        default=True,
        description="Serialize create/update per calendar day with a row lock",
    )

    # Credits
    free_hours_monthly_blocks: int = Field(
        default=8, ge=0, description="Monthly practice space allowance for sustaining members"
    )
    equipment_credits_monthly: int = Field(default=4, ge=0)
    equipment_credits_cap: int = Field(default=250, gt=0)
    refund_credits_on_cancel: bool = Field(
        default=True,
        description="Give back credit blocks spent on a reservation when it is cancelled",
    )
    promo_code_max_length: int = 64

    # Recurring reservations
    recurring_max_advance_days: int = Field(default=90, gt=0)
    recurring_sweep_hour: int = Field(default=3, ge=0, le=23)

    # Legacy flag kept for tooling that flips it directly
    is_testing: bool = False

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("space_timezone")
    @classmethod
    def _validate_timezone(cls, value: str) -> str:
        try:
            pytz.timezone(value)
        except pytz.UnknownTimeZoneError as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @model_validator(mode="after")
    def _validate_booking_rules(self) -> "Settings":
        if self.operating_close_hour <= self.operating_open_hour:
            raise ValueError("operating_close_hour must be after operating_open_hour")
        if self.min_reservation_hours > self.max_reservation_hours:
            raise ValueError("min_reservation_hours cannot exceed max_reservation_hours")
        return self

    def get_database_url(self) -> str:
        """Return the URL the application should connect to."""
        if (self.is_testing or is_running_tests()) and self.test_database_url:
            return self.test_database_url
        return self.database_url

    def credit_policies(self) -> Dict[CreditType, CreditPolicy]:
        """Resolve each credit type to its allocation policy."""
        return {
            CreditType.FREE_HOURS: ResetPolicy(),
            CreditType.EQUIPMENT_CREDITS: RolloverPolicy(cap=self.equipment_credits_cap),
        }


settings = Settings()
