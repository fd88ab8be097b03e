"""Models for the products a paid order grants."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from .enums import SubscriptionPeriod, SubscriptionStatus


class Subscription(BaseModel):
    """A user's membership subscription."""

    model_config = ConfigDict(strict=True)

    subscription_id: str
    user_id: int
    tier_id: int = Field(..., ge=1)
    period: SubscriptionPeriod
    status: SubscriptionStatus
    start_date: int = Field(..., description="Unix seconds")
    end_date: int = Field(..., description="Unix seconds")
    next_notify_at: int = Field(..., description="Renewal reminder time, unix seconds")
    auto_renew: bool = True
    order_no: str | None = Field(default=None, description="Order that created or last extended it")
    updated_at: datetime | None = None


class CoinTransaction(BaseModel):
    """Ledger entry for a coin balance change."""

    model_config = ConfigDict(strict=True)

    transaction_id: str
    user_id: int
    amount: int
    type: str = Field(..., examples=["earn", "spend"])
    source: str = Field(..., examples=["purchase"])
    reference_type: str | None = None
    reference_id: str | None = None
    balance_before: int
    balance_after: int
    description: str | None = None
    created_at: datetime


class ShopPurchase(BaseModel):
    """Delivery record of a shop item to a user."""

    model_config = ConfigDict(strict=True)

    user_id: int
    item_id: int
    transaction_id: str = Field(..., description="Order number the item was paid with")
    purchased_at: datetime
