# Defines the tunable policy parameters of the reservation engine.
import os

from pydantic import BaseModel, Field


ENV_PREFIX = "RESERVATION_"


class ReservationSettings(BaseModel):
    """
    Settings for booking, pricing and cancellation rules.
    """
    tenant_cancellation_notice_hours: int = Field(default=24, ge=0, description="Minimum notice a tenant must give before the start to cancel")
    owner_cancellation_window_hours: int = Field(default=48, ge=0, description="Window before the start in which a spot owner may cancel")
    hourly_cap_threshold_minutes: int = Field(default=360, ge=1, description="Duration from which the daily price caps the hourly price")
    log_level: str = Field(default="INFO", description="Root log level of the application")

    @classmethod
    def from_env(cls) -> "ReservationSettings":
        """Build settings from RESERVATION_* environment variables, falling back to defaults."""
        overrides = {}
        for name in cls.model_fields:
            value = os.getenv(ENV_PREFIX + name.upper())
            if value is not None:
                overrides[name] = value
        return cls(**overrides)
