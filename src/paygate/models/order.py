"""Payment order model."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from .enums import OrderStatus


class Order(BaseModel):
    """A payment order awaiting (or past) provider confirmation.

    Amounts are stored in minor currency units (fen/cents).
    product_type is kept as a raw string so orders for product types
    this service does not know about still load.
    """

    model_config = ConfigDict(strict=True)

    order_no: str = Field(..., description="Caller-assigned unique order number")
    user_id: int = Field(..., description="Purchasing user")
    amount: int = Field(..., ge=0, description="Amount in minor currency units")
    currency: str = Field(default="CNY", description="Currency code")
    status: OrderStatus = Field(..., description="Order status")
    product_type: str = Field(
        ...,
        description="subscription, coins or shop_item",
        examples=["coins"],
    )
    product_id: str = Field(
        ...,
        description="Product reference; 'tier:period' for subscriptions, coin count for coins",
        examples=["2:monthly", "200", "17"],
    )
    product_name: str | None = Field(default=None, description="Display name")
    trade_no: str | None = Field(
        default=None,
        description="Provider transaction number, bound once paid",
    )
    created_at: datetime = Field(..., description="Creation timestamp")
    paid_at: datetime | None = Field(default=None, description="Payment timestamp")
    expires_at: int = Field(..., description="Unix seconds after which a pending order expires")


class OrderCreate(BaseModel):
    """Data required to open a new order."""

    model_config = ConfigDict(strict=True)

    user_id: int
    amount: int = Field(..., gt=0)
    product_type: str
    product_id: str
    product_name: str | None = None
