"""Shop item delivery."""

import datetime as dt
from typing import TYPE_CHECKING

from paygate.models import FulfillmentError, ShopPurchase
from paygate.utils.logging import get_logger

if TYPE_CHECKING:
    from .dynamodb import DynamoDBService

logger = get_logger(__name__)


class ShopService:
    """Deliver purchased shop items to users."""

    ITEMS_TABLE = "shop-items"
    PURCHASES_TABLE = "user-purchases"

    def __init__(self, db: "DynamoDBService") -> None:
        self.db = db

    def item_exists(self, item_id: int) -> bool:
        return self.db.get_item(self.ITEMS_TABLE, {"item_id": item_id}) is not None

    def deliver_item(self, user_id: int, item_id: int, order_no: str) -> ShopPurchase:
        """Record the purchase, which is what delivers the item.

        Raises:
            FulfillmentError: If the item does not exist.
        """
        if not self.item_exists(item_id):
            raise FulfillmentError(f"Shop item not found: {item_id}")

        purchase = ShopPurchase(
            user_id=user_id,
            item_id=item_id,
            transaction_id=order_no,
            purchased_at=dt.datetime.now(dt.UTC),
        )
        self.db.put_item(
            self.PURCHASES_TABLE,
            {
                "user_id": purchase.user_id,
                "transaction_id": purchase.transaction_id,
                "item_id": purchase.item_id,
                "purchased_at": purchase.purchased_at.isoformat(),
            },
        )
        logger.info("Shop item delivered: user=%s item=%s", user_id, item_id)
        return purchase
