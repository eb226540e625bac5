# backend/studio_engine/core/config.py
import logging
import os
from pathlib import Path
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import DEFAULT_CURRENCY


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
    logger.debug(f"[CONFIG] Looking for .env at: {env_path} (exists={env_path.exists()})")
    load_dotenv(env_path)


class Settings(BaseSettings):
    """
    Engine configuration.

    Passed explicitly into every service so pricing and ledger logic never
    reach for global state in the middle of an operation.
    """

    environment: Literal["development", "test", "staging", "production"] = Field(
        default="development",
        alias="ENVIRONMENT",
        description="Deployment environment name",
    )

    # Database
    database_url: str = Field(
        default="sqlite:///./studio_engine.db",
        alias="DATABASE_URL",
        description="SQLAlchemy database URL",
    )
    sql_echo: bool = Field(default=False, alias="SQL_ECHO")

    # Studio calendar
    timezone: str = Field(
        default="Europe/Budapest",
        alias="STUDIO_TIMEZONE",
        description="Timezone used for studio wall-clock timestamps",
    )
    default_currency: str = Field(default=DEFAULT_CURRENCY, alias="DEFAULT_CURRENCY")

    # Booking ledger
    credit_price_huf: int = Field(
        default=1000,
        ge=0,
        alias="BOOKING_CREDIT_PRICE_HUF",
        description="Price of one credit when a client books without an active pass",
    )
    cancellation_window_hours: int = Field(
        default=24,
        ge=0,
        alias="BOOKING_CANCELLATION_WINDOW_HOURS",
        description="Hours before class start after which self-service cancellation closes",
    )
    technical_guest_client_id: Optional[int] = Field(
        default=None,
        alias="TECHNICAL_GUEST_CLIENT_ID",
        description="Client row that stands in for unnamed walk-in guests",
    )

    # Settlement policy
    bill_no_show_entry_fee: bool = Field(default=False, alias="SETTLEMENT_BILL_NO_SHOW_ENTRY_FEE")
    bill_no_show_trainer_fee: bool = Field(
        default=False, alias="SETTLEMENT_BILL_NO_SHOW_TRAINER_FEE"
    )
    bill_late_cancellation: bool = Field(default=False, alias="SETTLEMENT_BILL_LATE_CANCELLATION")
    late_cancellation_hours: int = Field(
        default=24,
        ge=0,
        alias="SETTLEMENT_LATE_CANCELLATION_HOURS",
        description="A cancellation this close to class start counts as late",
    )

    # Monitoring
    slow_operation_threshold_s: float = Field(default=1.0, gt=0, alias="SLOW_OPERATION_THRESHOLD_S")

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("default_currency", mode="before")
    @classmethod
    def _normalize_currency(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @model_validator(mode="after")
    def _force_test_environment(self) -> "Settings":
        if is_running_tests() and self.environment == "development":
            self.environment = "test"
        return self

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.lower().startswith("sqlite")


settings = Settings()
