"""Grant the product a paid order bought.

Dispatches on the order's product_type:
- subscription: product_id is "tier:period"
- coins: product_id is the coin count
- shop_item: product_id is the shop item id

Unknown product types are logged and skipped; the order still commits.
"""

from typing import TYPE_CHECKING

from paygate.models import (
    AuditAction,
    FulfillmentError,
    Order,
    ProductType,
    SubscriptionPeriod,
)
from paygate.utils.logging import get_logger

if TYPE_CHECKING:
    from .audit_log import AuditLogService
    from .membership import CoinService, SubscriptionService
    from .shop import ShopService

logger = get_logger(__name__)


def parse_subscription_product(product_id: str) -> tuple[int, SubscriptionPeriod]:
    """Split a "tier:period" product id.

    Raises:
        FulfillmentError: If the id is malformed.
    """
    tier_text, _, period_text = product_id.partition(":")
    try:
        return int(tier_text), SubscriptionPeriod(period_text)
    except ValueError as e:
        raise FulfillmentError(f"Invalid subscription product: {product_id!r}") from e


def parse_int_product(product_id: str, kind: str) -> int:
    try:
        return int(product_id)
    except ValueError as e:
        raise FulfillmentError(f"Invalid {kind} product: {product_id!r}") from e


class FulfillmentService:
    """Routes a paid order to the service that delivers it."""

    def __init__(
        self,
        subscriptions: "SubscriptionService",
        coins: "CoinService",
        shop: "ShopService",
        audit: "AuditLogService",
    ) -> None:
        self.subscriptions = subscriptions
        self.coins = coins
        self.shop = shop
        self.audit = audit

    def fulfill(self, order: Order, trade_no: str) -> bool:
        """Deliver the order's product.

        Args:
            order: The order being paid
            trade_no: Provider transaction number

        Returns:
            True if something was delivered, False for unknown product types.

        Raises:
            FulfillmentError: Or any storage error, if delivery failed.
        """
        try:
            product_type = ProductType(order.product_type)
        except ValueError:
            logger.warning(
                "Unknown product type %r on order %s; nothing delivered",
                order.product_type,
                order.order_no,
            )
            return False

        if product_type == ProductType.SUBSCRIPTION:
            tier_id, period = parse_subscription_product(order.product_id)
            self.subscriptions.create_subscription(
                user_id=order.user_id,
                tier_id=tier_id,
                period=period,
                order_no=order.order_no,
            )
        elif product_type == ProductType.COINS:
            coins = parse_int_product(order.product_id, "coins")
            self.coins.add_coins(
                order.user_id,
                coins,
                source="purchase",
                description=f"购买积分 {coins}",
                reference_type="order",
                reference_id=order.order_no,
            )
        elif product_type == ProductType.SHOP_ITEM:
            item_id = parse_int_product(order.product_id, "shop item")
            self.shop.deliver_item(order.user_id, item_id, order.order_no)
            self.audit.log(
                AuditAction.ITEM_ACQUIRED,
                user_id=order.user_id,
                target_type="shop_item",
                target_id=order.product_id,
                metadata={
                    "order_no": order.order_no,
                    "trade_no": trade_no,
                    "status": "delivered",
                },
            )
        return True
