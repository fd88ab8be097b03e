"""Inbound payment callback and its outcome."""

from decimal import Decimal, InvalidOperation
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .enums import CallbackStatus


def _signed_text(value: str | int | float) -> str:
    """Render a field the way the provider signed it.

    Whole floats are signed without a fractional part (50.0 -> "50"),
    other numbers in their shortest round-trip form (1700000000.5).
    """
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


class CallbackPayload(BaseModel):
    """Normalized provider callback, from either a JSON or a form body."""

    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    order_no: str = Field(..., min_length=1, examples=["ORD20260101120000ABC123"])
    trade_no: str = Field(..., min_length=1, examples=["TXN-2026-0001"])
    amount: str | int | float = Field(
        ...,
        description="Paid amount; strings and floats are major units, integers minor units",
        examples=["50.00", 5000],
    )
    status: CallbackStatus
    timestamp: str | int | float | None = Field(
        default=None, description="Unix seconds; fractions are truncated when checked"
    )
    sign: str | None = None
    nonce: str | None = None

    @field_validator("timestamp", "sign", "nonce", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if value == "":
            return None
        return value

    @field_validator("amount", mode="before")
    @classmethod
    def _require_amount(cls, value: Any) -> Any:
        if isinstance(value, bool):
            raise ValueError("amount must be a number or numeric string")
        if value in (None, "", 0):
            raise ValueError("amount is required")
        if isinstance(value, str):
            try:
                parsed = Decimal(value.strip())
            except InvalidOperation as e:
                raise ValueError("amount is not numeric") from e
            if not parsed.is_finite():
                raise ValueError("amount is not numeric")
        return value

    def signed_fields(self) -> dict[str, str]:
        """Fields covered by the callback signature, as signed strings."""
        return {
            "order_no": self.order_no,
            "trade_no": self.trade_no,
            "amount": _signed_text(self.amount),
            "status": self.status.value,
            "timestamp": _signed_text(self.timestamp) if self.timestamp else "",
            "nonce": self.nonce or "",
        }


class CallbackResult(BaseModel):
    """Outcome of one callback invocation: HTTP status plus JSON body."""

    status_code: int
    success: bool
    message: str | None = None
    error: str | None = None

    @classmethod
    def ok(cls, message: str) -> "CallbackResult":
        return cls(status_code=200, success=True, message=message)

    @classmethod
    def fail(cls, status_code: int, error: str) -> "CallbackResult":
        return cls(status_code=status_code, success=False, error=error)

    def body(self) -> dict[str, Any]:
        """JSON response body, omitting unset fields."""
        return self.model_dump(exclude={"status_code"}, exclude_none=True)
