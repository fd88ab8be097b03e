"""Order persistence.

Orders live in the ``orders`` table (partition key ``order_no``) with a
``status-index`` GSI (``status`` + numeric ``expires_at``) for the expiry
sweep. Provider transaction numbers are bound to orders in the
``trade-nos`` table (partition key ``trade_no``) and read back with
strongly consistent reads.
"""

import datetime as dt
import time
from typing import TYPE_CHECKING, Any

from boto3.dynamodb.conditions import Key

from paygate.models import Order, OrderCreate, OrderStatus
from paygate.services.signature import generate_order_no
from paygate.state_machine import can_transition
from paygate.utils.logging import get_logger

if TYPE_CHECKING:
    from .dynamodb import DynamoDBService

logger = get_logger(__name__)

ORDER_TTL_SECONDS = 30 * 60


class OrderRepository:
    """Read and mutate payment orders."""

    ORDERS_TABLE = "orders"
    TRADE_NOS_TABLE = "trade-nos"
    STATUS_INDEX = "status-index"

    def __init__(self, db: "DynamoDBService") -> None:
        """Initialize the repository.

        Args:
            db: DynamoDB service instance
        """
        self.db = db

    def create_order(self, params: OrderCreate, now: dt.datetime | None = None) -> Order:
        """Open a pending order that expires after 30 minutes.

        Args:
            params: Order contents
            now: Creation time (defaults to current UTC time)

        Returns:
            The stored Order
        """
        created_at = now or dt.datetime.now(dt.UTC)
        order = Order(
            order_no=generate_order_no(created_at),
            user_id=params.user_id,
            amount=params.amount,
            status=OrderStatus.PENDING,
            product_type=params.product_type,
            product_id=params.product_id,
            product_name=params.product_name,
            created_at=created_at,
            expires_at=int(created_at.timestamp()) + ORDER_TTL_SECONDS,
        )
        self.put_order(order)
        logger.info("Created order %s for user %s", order.order_no, order.user_id)
        return order

    def put_order(self, order: Order) -> None:
        """Store an order, refusing to overwrite an existing order number.

        Raises:
            ValueError: If the order number is already taken.
        """
        created = self.db.put_item(
            self.ORDERS_TABLE,
            self._order_to_item(order),
            condition_expression="attribute_not_exists(order_no)",
        )
        if not created:
            raise ValueError(f"Order {order.order_no} already exists")

    def get_order(self, order_no: str) -> Order | None:
        """Fetch an order by number (strongly consistent)."""
        item = self.db.get_item(
            self.ORDERS_TABLE, {"order_no": order_no}, consistent_read=True
        )
        return self._item_to_order(item) if item else None

    def get_order_by_trade_no(self, trade_no: str) -> Order | None:
        """Find the order a provider transaction number is bound to.

        Reads the ``trade-nos`` binding table with a strongly consistent
        read, so a number bound a moment ago by another callback is seen.
        """
        binding = self.db.get_item(
            self.TRADE_NOS_TABLE, {"trade_no": trade_no}, consistent_read=True
        )
        if not binding:
            return None
        return self.get_order(binding["order_no"])

    def bind_trade_no(self, trade_no: str, order_no: str) -> bool:
        """Claim a provider transaction number for an order.

        Succeeds when the number is unbound or already bound to the same
        order, so a retried callback for that order can claim it again.

        Returns:
            True if the number is now bound to order_no, False if another
            order holds it.
        """
        return self.db.put_item(
            self.TRADE_NOS_TABLE,
            {
                "trade_no": trade_no,
                "order_no": order_no,
                "bound_at": dt.datetime.now(dt.UTC).isoformat(),
            },
            condition_expression="attribute_not_exists(trade_no) OR order_no = :order_no",
            expression_attribute_values={":order_no": order_no},
        )

    def release_trade_no(self, trade_no: str, order_no: str) -> bool:
        """Drop a binding held by order_no (after a payment that did not commit)."""
        released = self.db.delete_item(
            self.TRADE_NOS_TABLE,
            {"trade_no": trade_no},
            condition_expression="order_no = :order_no",
            expression_attribute_values={":order_no": order_no},
        )
        if not released:
            logger.warning("Trade number %s is not bound to %s", trade_no, order_no)
        return released

    def mark_paid(
        self,
        order_no: str,
        expected_status: OrderStatus,
        trade_no: str,
        paid_at: dt.datetime,
    ) -> bool:
        """Commit an order to paid in one transaction with its trade binding.

        The order update requires the order to still be in expected_status,
        and the ``trade-nos`` binding must still name this order.

        Args:
            order_no: Order to commit
            expected_status: Status the order was read in
            trade_no: Provider transaction number (already bound)
            paid_at: Payment time to record

        Returns:
            True if committed, False if either condition failed.
        """
        transact_items = [
            {
                "Update": {
                    "TableName": self.db._table_name(self.ORDERS_TABLE),
                    "Key": {"order_no": {"S": order_no}},
                    "UpdateExpression": (
                        "SET #status = :paid, trade_no = :trade_no, "
                        "paid_at = :paid_at, updated_at = :now"
                    ),
                    "ConditionExpression": "#status = :expected",
                    "ExpressionAttributeNames": {"#status": "status"},
                    "ExpressionAttributeValues": {
                        ":paid": {"S": OrderStatus.PAID.value},
                        ":expected": {"S": expected_status.value},
                        ":trade_no": {"S": trade_no},
                        ":paid_at": {"S": paid_at.isoformat()},
                        ":now": {"S": dt.datetime.now(dt.UTC).isoformat()},
                    },
                }
            },
            {
                "ConditionCheck": {
                    "TableName": self.db._table_name(self.TRADE_NOS_TABLE),
                    "Key": {"trade_no": {"S": trade_no}},
                    "ConditionExpression": "order_no = :order_no",
                    "ExpressionAttributeValues": {":order_no": {"S": order_no}},
                }
            },
        ]
        committed = self.db.transact_write(transact_items)
        if not committed:
            logger.warning(
                "Paid commit refused for %s (expected %s, trade %s)",
                order_no,
                expected_status.value,
                trade_no,
            )
        return committed

    def update_order_status(
        self,
        order_no: str,
        status: OrderStatus,
        expected_status: OrderStatus | None = None,
    ) -> Order | None:
        """Set an order's status.

        Args:
            order_no: Order to update
            status: New status
            expected_status: Only update if the order is still in this status

        Returns:
            The updated Order, or None if the order does not exist or is no
            longer in expected_status.
        """
        values: dict[str, Any] = {
            ":status": status.value,
            ":now": dt.datetime.now(dt.UTC).isoformat(),
        }
        if expected_status is not None:
            condition = "#status = :expected"
            values[":expected"] = expected_status.value
        else:
            condition = "attribute_exists(order_no)"

        attrs = self.db.update_item(
            self.ORDERS_TABLE,
            {"order_no": order_no},
            "SET #status = :status, updated_at = :now",
            values,
            {"#status": "status"},  # status is a reserved word
            condition_expression=condition,
        )
        if attrs is None:
            logger.warning("Status update refused for order %s", order_no)
            return None
        return self._item_to_order(attrs)

    def expire_timeout_orders(self, now: int | None = None) -> list[str]:
        """Mark pending orders past their expiry as expired.

        Each update is conditional on the order still being pending, so an
        order paid concurrently is left alone.

        Args:
            now: Unix seconds to compare against (defaults to current time)

        Returns:
            Order numbers that were expired.
        """
        cutoff = int(now if now is not None else time.time())
        candidates = self.db.query_by_gsi(
            self.ORDERS_TABLE,
            self.STATUS_INDEX,
            "status",
            OrderStatus.PENDING.value,
            sort_key_condition=Key("expires_at").lt(cutoff),
        )

        expired: list[str] = []
        for item in candidates:
            attrs = self.db.update_item(
                self.ORDERS_TABLE,
                {"order_no": item["order_no"]},
                "SET #status = :expired, updated_at = :now",
                {
                    ":expired": OrderStatus.EXPIRED.value,
                    ":pending": OrderStatus.PENDING.value,
                    ":now": dt.datetime.now(dt.UTC).isoformat(),
                },
                {"#status": "status"},
                condition_expression="#status = :pending",
            )
            if attrs is not None:
                expired.append(item["order_no"])

        if expired:
            logger.info("Expired %d timed-out orders", len(expired))
        return expired

    def _order_to_item(self, order: Order) -> dict[str, Any]:
        """Convert Order model to DynamoDB item."""
        item: dict[str, Any] = {
            "order_no": order.order_no,
            "user_id": order.user_id,
            "amount": order.amount,
            "currency": order.currency,
            "status": order.status.value,
            "product_type": order.product_type,
            "product_id": order.product_id,
            "created_at": order.created_at.isoformat(),
            "expires_at": order.expires_at,
        }
        if order.product_name:
            item["product_name"] = order.product_name
        if order.trade_no:
            item["trade_no"] = order.trade_no
        if order.paid_at:
            item["paid_at"] = order.paid_at.isoformat()
        return item

    def _item_to_order(self, item: dict[str, Any]) -> Order:
        """Convert DynamoDB item to Order model."""
        return Order(
            order_no=item["order_no"],
            user_id=int(item["user_id"]),
            amount=int(item["amount"]),
            currency=item.get("currency", "CNY"),
            status=OrderStatus(item["status"]),
            product_type=item["product_type"],
            product_id=item["product_id"],
            product_name=item.get("product_name"),
            trade_no=item.get("trade_no"),
            created_at=dt.datetime.fromisoformat(item["created_at"]),
            paid_at=(
                dt.datetime.fromisoformat(item["paid_at"])
                if item.get("paid_at")
                else None
            ),
            expires_at=int(item["expires_at"]),
        )


def validate_order_for_payment(order: Order | None, now: int | None = None) -> tuple[bool, str | None]:
    """Check an order can still be paid.

    Returns:
        Tuple of (valid, error_message)
    """
    if order is None:
        return False, "订单不存在"
    if not can_transition(order.status, OrderStatus.PAID):
        return False, f"订单状态不正确: {order.status.value}"
    current = int(now if now is not None else time.time())
    if order.expires_at < current:
        return False, "订单已过期"
    return True, None
