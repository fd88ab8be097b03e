"""Callback service configuration.

Settings are read once from the environment (and SSM for the signing
secret) and validated up front, so a misconfigured deployment fails at
startup rather than on the first callback.

Environment variables:
    PAYMENT_SECRET: HMAC signing secret shared with the provider. When unset,
        read from SSM at /paygate/<env>/payment/secret.
    PAYMENT_CALLBACK_IPS: Comma-separated provider IP allow-list.
    ENVIRONMENT: "production" enables the IP allow-list; anything else is
        development mode.
    PAYMENT_TIMESTAMP_VALIDITY: Replay window in seconds (default 300).
    PAYMENT_LOCK_DURATION: Per-order lock lease in seconds (default 30).
"""

import os
from functools import lru_cache

from pydantic import BaseModel, ConfigDict, Field, field_validator

from paygate.services.ssm_service import get_ssm_service

PRODUCTION = "production"
DEFAULT_TIMESTAMP_VALIDITY = 300
DEFAULT_LOCK_DURATION = 30


class CallbackSettings(BaseModel):
    """Typed configuration for the callback pipeline."""

    model_config = ConfigDict(frozen=True)

    payment_secret: str = Field(..., min_length=1, repr=False)
    callback_ips: tuple[str, ...] = Field(default=())
    environment: str = Field(default="dev")
    timestamp_validity: int = Field(default=DEFAULT_TIMESTAMP_VALIDITY, gt=0)
    lock_duration: int = Field(default=DEFAULT_LOCK_DURATION, gt=0)

    @field_validator("callback_ips", mode="before")
    @classmethod
    def _split_ips(cls, value: object) -> object:
        if isinstance(value, str):
            return tuple(ip.strip() for ip in value.split(",") if ip.strip())
        return value

    @property
    def development_mode(self) -> bool:
        """IP allow-listing is bypassed outside production."""
        return self.environment != PRODUCTION


def load_settings() -> CallbackSettings:
    """Build settings from the environment, falling back to SSM for the secret.

    Raises:
        pydantic.ValidationError: If a value is missing or out of range.
        SSMServiceError: If the secret is not in the environment and SSM fails.
    """
    environment = os.environ.get("ENVIRONMENT", "dev")
    secret = os.environ.get("PAYMENT_SECRET")
    if not secret:
        secret = get_ssm_service().get_parameter(f"/paygate/{environment}/payment/secret")

    return CallbackSettings(
        payment_secret=secret,
        callback_ips=os.environ.get("PAYMENT_CALLBACK_IPS", ""),
        environment=environment,
        timestamp_validity=os.environ.get(
            "PAYMENT_TIMESTAMP_VALIDITY", DEFAULT_TIMESTAMP_VALIDITY
        ),
        lock_duration=os.environ.get("PAYMENT_LOCK_DURATION", DEFAULT_LOCK_DURATION),
    )


@lru_cache(maxsize=1)
def get_settings() -> CallbackSettings:
    """Get the process-wide settings (loaded on first use)."""
    return load_settings()
