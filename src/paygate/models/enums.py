"""Enumeration types for payment callback data models."""

from enum import Enum


class OrderStatus(str, Enum):
    """Lifecycle status of a payment order."""

    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"
    REFUNDED = "refunded"


class ProductType(str, Enum):
    """What an order buys. Interpretation of product_id depends on this."""

    SUBSCRIPTION = "subscription"
    COINS = "coins"
    SHOP_ITEM = "shop_item"


class CallbackStatus(str, Enum):
    """Payment outcome reported by the provider."""

    SUCCESS = "success"
    FAILED = "failed"


class SubscriptionPeriod(str, Enum):
    """Billing period of a subscription product."""

    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


class SubscriptionStatus(str, Enum):
    """Status of a membership subscription."""

    ACTIVE = "active"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class AuditAction(str, Enum):
    """Money- or security-relevant actions recorded in the audit log."""

    PAYMENT_SUCCESS = "payment_success"
    PAYMENT_FAILED = "payment_failed"
    PAYMENT_REFUND = "payment_refund"
    ITEM_ACQUIRED = "item_acquired"


class RiskLevel(str, Enum):
    """Risk classification of an audit record."""

    NORMAL = "normal"
    HIGH = "high"
