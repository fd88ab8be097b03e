"""Response schemas of the callback endpoints, for OpenAPI docs."""

from pydantic import BaseModel, ConfigDict, Field


class CallbackResponse(BaseModel):
    """Body returned to the payment provider.

    Exactly one of message (success) or error (failure) is present.
    """

    model_config = ConfigDict(strict=True)

    success: bool = Field(..., description="Whether the callback was accepted")
    message: str | None = Field(
        default=None,
        description="Outcome on success",
        examples=["支付成功", "订单已处理", "支付失败已记录"],
    )
    error: str | None = Field(
        default=None,
        description="Rejection reason",
        examples=["签名验证失败", "金额不匹配"],
    )


class HealthResponse(BaseModel):
    """Liveness check body."""

    status: str = Field(..., examples=["ok"])
    timestamp: str
    service: str
