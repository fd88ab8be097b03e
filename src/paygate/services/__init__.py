"""Backend services for the payment callback pipeline."""

from .audit_log import AuditLogService
from .callback_handler import PaymentCallbackHandler
from .dynamodb import DynamoDBService, get_dynamodb_service, reset_dynamodb_service
from .fulfillment import FulfillmentService
from .lock_service import LockService, payment_lock_key
from .membership import CoinService, SubscriptionService
from .order_repository import OrderRepository, validate_order_for_payment
from .shop import ShopService
from .ssm_service import SSMService, SSMServiceError, get_ssm_service

__all__ = [
    "AuditLogService",
    "CoinService",
    "DynamoDBService",
    "FulfillmentService",
    "LockService",
    "OrderRepository",
    "PaymentCallbackHandler",
    "ShopService",
    "SubscriptionService",
    "get_dynamodb_service",
    "reset_dynamodb_service",
    "payment_lock_key",
    "validate_order_for_payment",
    "SSMService",
    "SSMServiceError",
    "get_ssm_service",
]
