"""Pytest configuration and fixtures for the payment callback service tests.

This module provides reusable fixtures for testing:
- DynamoDB mocking with moto (every table the pipeline touches)
- Service instances wired to the mocked tables
- Sample data factories (orders, users, shop items)
- Signed callback payload factory
"""

import os
import time
from collections.abc import Callable, Generator
from datetime import datetime, timezone
from typing import Any

import boto3
import pytest
from moto import mock_aws

# === Environment Setup ===

# Set environment variables for testing before imports
os.environ.setdefault("AWS_DEFAULT_REGION", "eu-west-1")
os.environ.setdefault("DYNAMODB_TABLE_PREFIX", "test-paygate")
os.environ.setdefault("ENVIRONMENT", "dev")
os.environ.setdefault("PAYMENT_SECRET", "test-callback-secret")

# Only set fake credentials for moto if no real credentials are present
if not os.environ.get("AWS_PROFILE") and not os.environ.get("AWS_ACCESS_KEY_ID"):
    os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
    os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")

from paygate.config import CallbackSettings  # noqa: E402
from paygate.models import Order, OrderStatus  # noqa: E402
from paygate.services.audit_log import AuditLogService  # noqa: E402
from paygate.services.callback_handler import PaymentCallbackHandler  # noqa: E402
from paygate.services.dynamodb import DynamoDBService  # noqa: E402
from paygate.services.fulfillment import FulfillmentService  # noqa: E402
from paygate.services.lock_service import LockService  # noqa: E402
from paygate.services.membership import CoinService, SubscriptionService  # noqa: E402
from paygate.services.order_repository import OrderRepository  # noqa: E402
from paygate.services.shop import ShopService  # noqa: E402
from paygate.services.signature import sign_callback  # noqa: E402

TABLE_PREFIX = "test-paygate"
TEST_SECRET = "test-callback-secret"
TEST_USER_ID = 42


# === Singleton Reset ===


@pytest.fixture(autouse=True)
def reset_singletons() -> Generator[None, None, None]:
    """Reset cached services before and after each test.

    Tests using mock_aws then get fresh boto3 resources inside the mock
    context rather than a singleton from a previous test.
    """
    from paygate.services.ssm_service import SSMService, get_ssm_service
    from paygate_api.dependencies import reset_services

    def _reset() -> None:
        reset_services()
        get_ssm_service.cache_clear()
        SSMService.reset_instance()

    _reset()
    yield
    _reset()


# === DynamoDB Fixtures ===


def create_payment_tables(client: Any) -> None:
    """Create all DynamoDB tables used by the callback pipeline."""
    tables: list[dict[str, Any]] = [
        {
            "TableName": f"{TABLE_PREFIX}-orders",
            "KeySchema": [{"AttributeName": "order_no", "KeyType": "HASH"}],
            "AttributeDefinitions": [
                {"AttributeName": "order_no", "AttributeType": "S"},
                {"AttributeName": "status", "AttributeType": "S"},
                {"AttributeName": "expires_at", "AttributeType": "N"},
            ],
            "GlobalSecondaryIndexes": [
                {
                    "IndexName": "status-index",
                    "KeySchema": [
                        {"AttributeName": "status", "KeyType": "HASH"},
                        {"AttributeName": "expires_at", "KeyType": "RANGE"},
                    ],
                    "Projection": {"ProjectionType": "ALL"},
                },
            ],
        },
        {
            "TableName": f"{TABLE_PREFIX}-trade-nos",
            "KeySchema": [{"AttributeName": "trade_no", "KeyType": "HASH"}],
            "AttributeDefinitions": [{"AttributeName": "trade_no", "AttributeType": "S"}],
        },
        {
            "TableName": f"{TABLE_PREFIX}-payment-locks",
            "KeySchema": [{"AttributeName": "lock_key", "KeyType": "HASH"}],
            "AttributeDefinitions": [{"AttributeName": "lock_key", "AttributeType": "S"}],
        },
        {
            "TableName": f"{TABLE_PREFIX}-audit-logs",
            "KeySchema": [{"AttributeName": "audit_id", "KeyType": "HASH"}],
            "AttributeDefinitions": [{"AttributeName": "audit_id", "AttributeType": "S"}],
        },
        {
            "TableName": f"{TABLE_PREFIX}-users",
            "KeySchema": [{"AttributeName": "user_id", "KeyType": "HASH"}],
            "AttributeDefinitions": [{"AttributeName": "user_id", "AttributeType": "N"}],
        },
        {
            "TableName": f"{TABLE_PREFIX}-coin-transactions",
            "KeySchema": [{"AttributeName": "transaction_id", "KeyType": "HASH"}],
            "AttributeDefinitions": [
                {"AttributeName": "transaction_id", "AttributeType": "S"}
            ],
        },
        {
            "TableName": f"{TABLE_PREFIX}-subscriptions",
            "KeySchema": [{"AttributeName": "subscription_id", "KeyType": "HASH"}],
            "AttributeDefinitions": [
                {"AttributeName": "subscription_id", "AttributeType": "S"},
                {"AttributeName": "user_id", "AttributeType": "N"},
            ],
            "GlobalSecondaryIndexes": [
                {
                    "IndexName": "user_id-index",
                    "KeySchema": [{"AttributeName": "user_id", "KeyType": "HASH"}],
                    "Projection": {"ProjectionType": "ALL"},
                },
            ],
        },
        {
            "TableName": f"{TABLE_PREFIX}-shop-items",
            "KeySchema": [{"AttributeName": "item_id", "KeyType": "HASH"}],
            "AttributeDefinitions": [{"AttributeName": "item_id", "AttributeType": "N"}],
        },
        {
            "TableName": f"{TABLE_PREFIX}-user-purchases",
            "KeySchema": [
                {"AttributeName": "user_id", "KeyType": "HASH"},
                {"AttributeName": "transaction_id", "KeyType": "RANGE"},
            ],
            "AttributeDefinitions": [
                {"AttributeName": "user_id", "AttributeType": "N"},
                {"AttributeName": "transaction_id", "AttributeType": "S"},
            ],
        },
    ]
    for table in tables:
        client.create_table(BillingMode="PAY_PER_REQUEST", **table)


@pytest.fixture
def aws_credentials() -> None:
    """Mocked AWS Credentials for moto."""
    if not os.environ.get("AWS_PROFILE"):
        os.environ["AWS_ACCESS_KEY_ID"] = "testing"
        os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
        os.environ["AWS_SECURITY_TOKEN"] = "testing"
        os.environ["AWS_SESSION_TOKEN"] = "testing"
    os.environ["AWS_DEFAULT_REGION"] = "eu-west-1"
    os.environ["DYNAMODB_TABLE_PREFIX"] = TABLE_PREFIX


@pytest.fixture
def dynamodb_tables(aws_credentials: None) -> Generator[Any, None, None]:
    """Mocked DynamoDB with every payment table created."""
    with mock_aws():
        client = boto3.client("dynamodb", region_name="eu-west-1")
        create_payment_tables(client)
        yield boto3.resource("dynamodb", region_name="eu-west-1")


@pytest.fixture
def db(dynamodb_tables: Any) -> DynamoDBService:
    """DynamoDBService bound to the mocked tables."""
    return DynamoDBService(environment="test")


# === Service Fixtures ===


@pytest.fixture
def settings() -> CallbackSettings:
    """Development-mode settings with the test secret."""
    return CallbackSettings(payment_secret=TEST_SECRET, environment="dev")


@pytest.fixture
def orders(db: DynamoDBService) -> OrderRepository:
    return OrderRepository(db)


@pytest.fixture
def locks(db: DynamoDBService) -> LockService:
    return LockService(db)


@pytest.fixture
def audit(db: DynamoDBService) -> AuditLogService:
    return AuditLogService(db)


@pytest.fixture
def coins(db: DynamoDBService) -> CoinService:
    return CoinService(db)


@pytest.fixture
def subscriptions(db: DynamoDBService) -> SubscriptionService:
    return SubscriptionService(db)


@pytest.fixture
def shop(db: DynamoDBService) -> ShopService:
    return ShopService(db)


@pytest.fixture
def fulfillment(
    subscriptions: SubscriptionService,
    coins: CoinService,
    shop: ShopService,
    audit: AuditLogService,
) -> FulfillmentService:
    return FulfillmentService(subscriptions, coins, shop, audit)


@pytest.fixture
def callback_handler(
    settings: CallbackSettings,
    orders: OrderRepository,
    locks: LockService,
    audit: AuditLogService,
    fulfillment: FulfillmentService,
) -> PaymentCallbackHandler:
    """Callback pipeline wired to moto-backed services."""
    return PaymentCallbackHandler(settings, orders, locks, audit, fulfillment)


# === Sample Data Factories ===


@pytest.fixture
def make_order(orders: OrderRepository) -> Callable[..., Order]:
    """Factory storing an order directly (bypassing order number generation)."""

    def _make(
        order_no: str = "ORD-1",
        amount: int = 5000,
        product_type: str = "coins",
        product_id: str = "200",
        status: OrderStatus = OrderStatus.PENDING,
        user_id: int = TEST_USER_ID,
        expires_in: int = 1800,
    ) -> Order:
        order = Order(
            order_no=order_no,
            user_id=user_id,
            amount=amount,
            status=status,
            product_type=product_type,
            product_id=product_id,
            created_at=datetime.now(timezone.utc),
            expires_at=int(time.time()) + expires_in,
        )
        orders.put_order(order)
        return order

    return _make


@pytest.fixture
def make_user(db: DynamoDBService) -> Callable[..., dict[str, Any]]:
    """Factory creating a user row with a coin balance."""

    def _make(user_id: int = TEST_USER_ID, coins: int = 0) -> dict[str, Any]:
        item = {"user_id": user_id, "coins": coins, "username": f"user{user_id}"}
        db.put_item("users", item)
        return item

    return _make


@pytest.fixture
def make_shop_item(db: DynamoDBService) -> Callable[..., dict[str, Any]]:
    """Factory creating a shop item."""

    def _make(item_id: int = 17, name: str = "Avatar frame") -> dict[str, Any]:
        item = {"item_id": item_id, "name": name}
        db.put_item("shop-items", item)
        return item

    return _make


@pytest.fixture
def audit_records(dynamodb_tables: Any) -> Callable[[], list[dict[str, Any]]]:
    """Read back every audit row (metadata decoded)."""
    import json

    def _read() -> list[dict[str, Any]]:
        table = dynamodb_tables.Table(f"{TABLE_PREFIX}-audit-logs")
        items = table.scan()["Items"]
        for item in items:
            item["metadata"] = json.loads(item["metadata"])
        return items

    return _read


# === Callback Payloads ===


@pytest.fixture
def make_callback() -> Callable[..., dict[str, Any]]:
    """Factory for provider callbacks signed with the test secret."""

    def _make(
        order_no: str = "ORD-1",
        trade_no: str = "T-1",
        amount: str | int = "50.00",
        status: str = "success",
        timestamp: int | float | None = None,
        nonce: str = "n0nce",
        secret: str = TEST_SECRET,
        **overrides: Any,
    ) -> dict[str, Any]:
        params: dict[str, Any] = {
            "order_no": order_no,
            "trade_no": trade_no,
            "amount": amount,
            "status": status,
            "timestamp": str(timestamp if timestamp is not None else int(time.time())),
            "nonce": nonce,
        }
        params["sign"] = sign_callback(params, secret)
        params.update(overrides)
        return params

    return _make
