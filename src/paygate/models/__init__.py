"""Pydantic models for payment callback data entities."""

from .audit import AuditRecord
from .callback import CallbackPayload, CallbackResult
from .enums import (
    AuditAction,
    CallbackStatus,
    OrderStatus,
    ProductType,
    RiskLevel,
    SubscriptionPeriod,
    SubscriptionStatus,
)
from .errors import (
    ERROR_HTTP_STATUS,
    ERROR_MESSAGES,
    CallbackError,
    ErrorCode,
    FulfillmentError,
)
from .membership import CoinTransaction, ShopPurchase, Subscription
from .order import Order, OrderCreate

__all__ = [
    # Enums
    "AuditAction",
    "CallbackStatus",
    "OrderStatus",
    "ProductType",
    "RiskLevel",
    "SubscriptionPeriod",
    "SubscriptionStatus",
    # Order
    "Order",
    "OrderCreate",
    # Callback
    "CallbackPayload",
    "CallbackResult",
    # Audit
    "AuditRecord",
    # Membership
    "CoinTransaction",
    "ShopPurchase",
    "Subscription",
    # Errors
    "CallbackError",
    "ErrorCode",
    "ERROR_HTTP_STATUS",
    "ERROR_MESSAGES",
    "FulfillmentError",
]
