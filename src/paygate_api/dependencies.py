"""FastAPI dependency injection providers for the callback pipeline.

Services are lazily instantiated and cached with @lru_cache so every
request shares one DynamoDB resource and one set of settings.

Service Dependency Graph:
    CallbackSettings (get_settings)
    DynamoDBService (singleton via get_dynamodb_service)
        ├── OrderRepository
        ├── LockService
        ├── AuditLogService
        └── FulfillmentService
                ├── SubscriptionService
                ├── CoinService
                └── ShopService
    PaymentCallbackHandler (all of the above)

Testing:
    Use reset_services() to clear cached instances between tests.
"""

from functools import lru_cache

from paygate.config import CallbackSettings, get_settings
from paygate.services.audit_log import AuditLogService
from paygate.services.callback_handler import PaymentCallbackHandler
from paygate.services.dynamodb import get_dynamodb_service
from paygate.services.fulfillment import FulfillmentService
from paygate.services.lock_service import LockService
from paygate.services.membership import CoinService, SubscriptionService
from paygate.services.order_repository import OrderRepository
from paygate.services.shop import ShopService


def get_callback_settings() -> CallbackSettings:
    """Process-wide callback settings."""
    return get_settings()


@lru_cache
def get_order_repository() -> OrderRepository:
    return OrderRepository(db=get_dynamodb_service())


@lru_cache
def get_lock_service() -> LockService:
    return LockService(db=get_dynamodb_service())


@lru_cache
def get_audit_log_service() -> AuditLogService:
    return AuditLogService(db=get_dynamodb_service())


@lru_cache
def get_fulfillment_service() -> FulfillmentService:
    """Get cached FulfillmentService wired to the product services."""
    db = get_dynamodb_service()
    return FulfillmentService(
        subscriptions=SubscriptionService(db),
        coins=CoinService(db),
        shop=ShopService(db),
        audit=get_audit_log_service(),
    )


@lru_cache
def get_callback_handler() -> PaymentCallbackHandler:
    """Get cached PaymentCallbackHandler.

    Raises:
        pydantic.ValidationError: If the settings are invalid.
    """
    return PaymentCallbackHandler(
        settings=get_callback_settings(),
        orders=get_order_repository(),
        locks=get_lock_service(),
        audit=get_audit_log_service(),
        fulfillment=get_fulfillment_service(),
    )


def reset_services() -> None:
    """Clear all cached service instances and settings.

    Call this in test fixtures so each test builds services inside its
    own mock_aws context and environment.
    """
    from paygate.services.dynamodb import reset_dynamodb_service

    get_order_repository.cache_clear()
    get_lock_service.cache_clear()
    get_audit_log_service.cache_clear()
    get_fulfillment_service.cache_clear()
    get_callback_handler.cache_clear()
    get_settings.cache_clear()

    reset_dynamodb_service()
