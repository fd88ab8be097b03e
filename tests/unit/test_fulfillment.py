"""Unit tests for product fulfillment dispatch."""

from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any
from unittest.mock import MagicMock

import pytest

from paygate.models import (
    AuditAction,
    FulfillmentError,
    Order,
    OrderStatus,
    SubscriptionPeriod,
)
from paygate.services.fulfillment import (
    FulfillmentService,
    parse_int_product,
    parse_subscription_product,
)


def _order(product_type: str, product_id: str) -> Order:
    return Order(
        order_no="ORD-1",
        user_id=42,
        amount=5000,
        status=OrderStatus.PENDING,
        product_type=product_type,
        product_id=product_id,
        created_at=datetime.now(timezone.utc),
        expires_at=0,
    )


@pytest.fixture
def collaborators() -> dict[str, MagicMock]:
    return {
        "subscriptions": MagicMock(),
        "coins": MagicMock(),
        "shop": MagicMock(),
        "audit": MagicMock(),
    }


@pytest.fixture
def service(collaborators: dict[str, MagicMock]) -> FulfillmentService:
    return FulfillmentService(**collaborators)


class TestProductParsing:
    """product_id formats."""

    def test_subscription_product(self) -> None:
        assert parse_subscription_product("2:quarterly") == (2, SubscriptionPeriod.QUARTERLY)

    @pytest.mark.parametrize("product_id", ["2", "x:monthly", "2:weekly", ""])
    def test_malformed_subscription_product(self, product_id: str) -> None:
        with pytest.raises(FulfillmentError):
            parse_subscription_product(product_id)

    def test_int_product(self) -> None:
        assert parse_int_product("200", "coins") == 200
        with pytest.raises(FulfillmentError, match="Invalid coins product"):
            parse_int_product("lots", "coins")


class TestDispatch:
    """Routing by product type."""

    def test_subscription(
        self, service: FulfillmentService, collaborators: dict[str, MagicMock]
    ) -> None:
        assert service.fulfill(_order("subscription", "2:monthly"), "T-1") is True
        collaborators["subscriptions"].create_subscription.assert_called_once_with(
            user_id=42, tier_id=2, period=SubscriptionPeriod.MONTHLY, order_no="ORD-1"
        )

    def test_coins(
        self, service: FulfillmentService, collaborators: dict[str, MagicMock]
    ) -> None:
        assert service.fulfill(_order("coins", "200"), "T-1") is True
        collaborators["coins"].add_coins.assert_called_once_with(
            42,
            200,
            source="purchase",
            description="购买积分 200",
            reference_type="order",
            reference_id="ORD-1",
        )

    def test_shop_item_delivers_and_audits(
        self, service: FulfillmentService, collaborators: dict[str, MagicMock]
    ) -> None:
        assert service.fulfill(_order("shop_item", "17"), "T-1") is True
        collaborators["shop"].deliver_item.assert_called_once_with(42, 17, "ORD-1")
        collaborators["audit"].log.assert_called_once()
        args, kwargs = collaborators["audit"].log.call_args
        assert args == (AuditAction.ITEM_ACQUIRED,)
        assert kwargs["metadata"] == {"order_no": "ORD-1", "trade_no": "T-1", "status": "delivered"}

    def test_unknown_product_type_is_a_no_op(
        self,
        service: FulfillmentService,
        collaborators: dict[str, MagicMock],
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        assert service.fulfill(_order("gift_card", "1"), "T-1") is False
        assert "Unknown product type" in caplog.text
        for mock in collaborators.values():
            assert not mock.method_calls

    def test_service_errors_propagate(
        self, service: FulfillmentService, collaborators: dict[str, MagicMock]
    ) -> None:
        collaborators["coins"].add_coins.side_effect = FulfillmentError("User not found: 42")
        with pytest.raises(FulfillmentError):
            service.fulfill(_order("coins", "200"), "T-1")


def test_coins_against_moto(
    fulfillment: FulfillmentService,
    coins: Any,
    make_user: Callable[..., dict[str, Any]],
) -> None:
    make_user(42, coins=0)
    fulfillment.fulfill(_order("coins", "200"), "T-1")
    assert coins.get_balance(42) == 200
