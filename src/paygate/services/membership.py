"""Membership products: subscriptions and coin balances.

Both services raise FulfillmentError on any failure so the callback
pipeline can leave the order retryable.
"""

import calendar
import datetime as dt
import time
import uuid
from typing import TYPE_CHECKING, Any

from boto3.dynamodb.conditions import Attr

from paygate.models import (
    CoinTransaction,
    FulfillmentError,
    Subscription,
    SubscriptionPeriod,
    SubscriptionStatus,
)
from paygate.utils.logging import get_logger

if TYPE_CHECKING:
    from .dynamodb import DynamoDBService

logger = get_logger(__name__)

PERIOD_MONTHS: dict[SubscriptionPeriod, int] = {
    SubscriptionPeriod.MONTHLY: 1,
    SubscriptionPeriod.QUARTERLY: 3,
    SubscriptionPeriod.YEARLY: 12,
}
RENEWAL_NOTICE_SECONDS = 3 * 24 * 60 * 60


def add_months(start: int, months: int) -> int:
    """Add calendar months to a unix timestamp, clamping the day of month."""
    moment = dt.datetime.fromtimestamp(start, tz=dt.UTC)
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return int(moment.replace(year=year, month=month, day=day).timestamp())


def calculate_end_date(start: int, period: SubscriptionPeriod) -> int:
    """End of a subscription period starting at start (unix seconds)."""
    return add_months(start, PERIOD_MONTHS[period])


class SubscriptionService:
    """Create, renew and upgrade subscriptions."""

    SUBSCRIPTIONS_TABLE = "subscriptions"
    USER_INDEX = "user_id-index"

    def __init__(self, db: "DynamoDBService") -> None:
        self.db = db

    def get_active(self, user_id: int, now: int | None = None) -> Subscription | None:
        """The user's active, unexpired subscription, if any."""
        current = int(now if now is not None else time.time())
        items = self.db.query_by_gsi(
            self.SUBSCRIPTIONS_TABLE,
            self.USER_INDEX,
            "user_id",
            user_id,
            filter_expression=(
                Attr("status").eq(SubscriptionStatus.ACTIVE.value)
                & Attr("end_date").gt(current)
            ),
        )
        if not items:
            return None
        latest = max(items, key=lambda item: int(item["end_date"]))
        return self._item_to_subscription(latest)

    def create_subscription(
        self,
        user_id: int,
        tier_id: int,
        period: SubscriptionPeriod,
        order_no: str | None = None,
    ) -> Subscription:
        """Grant a subscription, renewing or upgrading an active one.

        Upgrades (higher tier) restart from now on the new tier; same or
        lower tier purchases extend from the current end date.

        Raises:
            FulfillmentError: If the subscription cannot be written.
        """
        now = int(time.time())
        existing = self.get_active(user_id, now)
        if existing:
            return self._extend(existing, tier_id, period, now, order_no)

        end_date = calculate_end_date(now, period)
        subscription = Subscription(
            subscription_id=f"SUB-{uuid.uuid4().hex[:12].upper()}",
            user_id=user_id,
            tier_id=tier_id,
            period=period,
            status=SubscriptionStatus.ACTIVE,
            start_date=now,
            end_date=end_date,
            next_notify_at=end_date - RENEWAL_NOTICE_SECONDS,
            order_no=order_no,
        )
        created = self.db.put_item(
            self.SUBSCRIPTIONS_TABLE,
            self._subscription_to_item(subscription),
            condition_expression="attribute_not_exists(subscription_id)",
        )
        if not created:
            raise FulfillmentError(
                f"Subscription id collision for user {user_id}"
            )
        logger.info(
            "Subscription %s created: user=%s tier=%s period=%s",
            subscription.subscription_id,
            user_id,
            tier_id,
            period.value,
        )
        return subscription

    def _extend(
        self,
        existing: Subscription,
        tier_id: int,
        period: SubscriptionPeriod,
        now: int,
        order_no: str | None,
    ) -> Subscription:
        is_upgrade = tier_id > existing.tier_id
        start = now if is_upgrade else existing.end_date
        end_date = calculate_end_date(start, period)

        update_parts = [
            "end_date = :end",
            "next_notify_at = :notify",
            "updated_at = :now",
        ]
        values: dict[str, Any] = {
            ":end": end_date,
            ":notify": end_date - RENEWAL_NOTICE_SECONDS,
            ":now": dt.datetime.now(dt.UTC).isoformat(),
        }
        if is_upgrade:
            update_parts += ["tier_id = :tier", "#period = :period"]
            values[":tier"] = tier_id
            values[":period"] = period.value
        if order_no:
            update_parts.append("order_no = :order_no")
            values[":order_no"] = order_no

        attrs = self.db.update_item(
            self.SUBSCRIPTIONS_TABLE,
            {"subscription_id": existing.subscription_id},
            "SET " + ", ".join(update_parts),
            values,
            {"#period": "period"} if is_upgrade else None,  # period is a reserved word
            condition_expression="attribute_exists(subscription_id)",
        )
        if attrs is None:
            raise FulfillmentError(
                f"Subscription {existing.subscription_id} disappeared during renewal"
            )
        logger.info(
            "Subscription %s %s until %d",
            existing.subscription_id,
            "upgraded" if is_upgrade else "renewed",
            end_date,
        )
        return self._item_to_subscription(attrs)

    def _subscription_to_item(self, subscription: Subscription) -> dict[str, Any]:
        item: dict[str, Any] = {
            "subscription_id": subscription.subscription_id,
            "user_id": subscription.user_id,
            "tier_id": subscription.tier_id,
            "period": subscription.period.value,
            "status": subscription.status.value,
            "start_date": subscription.start_date,
            "end_date": subscription.end_date,
            "next_notify_at": subscription.next_notify_at,
            "auto_renew": subscription.auto_renew,
        }
        if subscription.order_no:
            item["order_no"] = subscription.order_no
        return item

    def _item_to_subscription(self, item: dict[str, Any]) -> Subscription:
        return Subscription(
            subscription_id=item["subscription_id"],
            user_id=int(item["user_id"]),
            tier_id=int(item["tier_id"]),
            period=SubscriptionPeriod(item["period"]),
            status=SubscriptionStatus(item["status"]),
            start_date=int(item["start_date"]),
            end_date=int(item["end_date"]),
            next_notify_at=int(item["next_notify_at"]),
            auto_renew=bool(item.get("auto_renew", True)),
            order_no=item.get("order_no"),
            updated_at=(
                dt.datetime.fromisoformat(item["updated_at"])
                if item.get("updated_at")
                else None
            ),
        )


class CoinService:
    """Coin balances and their ledger."""

    USERS_TABLE = "users"
    LEDGER_TABLE = "coin-transactions"

    def __init__(self, db: "DynamoDBService") -> None:
        self.db = db

    def get_balance(self, user_id: int) -> int:
        """Current coin balance (0 for unknown users)."""
        item = self.db.get_item(self.USERS_TABLE, {"user_id": user_id}, consistent_read=True)
        return int(item.get("coins", 0)) if item else 0

    def add_coins(
        self,
        user_id: int,
        amount: int,
        source: str,
        description: str | None = None,
        reference_type: str | None = None,
        reference_id: str | None = None,
    ) -> CoinTransaction:
        """Credit coins atomically and append a ledger entry.

        Raises:
            FulfillmentError: For non-positive amounts or unknown users.
        """
        if amount <= 0:
            raise FulfillmentError(f"Coin amount must be positive, got {amount}")

        attrs = self.db.update_item(
            self.USERS_TABLE,
            {"user_id": user_id},
            "ADD coins :amount",
            {":amount": amount},
            condition_expression="attribute_exists(user_id)",
        )
        if attrs is None:
            raise FulfillmentError(f"User not found: {user_id}")

        balance_after = int(attrs["coins"])
        entry = CoinTransaction(
            transaction_id=f"CTX-{uuid.uuid4().hex[:12].upper()}",
            user_id=user_id,
            amount=amount,
            type="earn",
            source=source,
            reference_type=reference_type,
            reference_id=reference_id,
            balance_before=balance_after - amount,
            balance_after=balance_after,
            description=description,
            created_at=dt.datetime.now(dt.UTC),
        )
        item: dict[str, Any] = {
            "transaction_id": entry.transaction_id,
            "user_id": entry.user_id,
            "amount": entry.amount,
            "type": entry.type,
            "source": entry.source,
            "balance_before": entry.balance_before,
            "balance_after": entry.balance_after,
            "created_at": entry.created_at.isoformat(),
        }
        if reference_type:
            item["reference_type"] = reference_type
        if reference_id:
            item["reference_id"] = reference_id
        if description:
            item["description"] = description
        self.db.put_item(self.LEDGER_TABLE, item)

        logger.info(
            "Credited %d coins to user %s (balance %d -> %d)",
            amount,
            user_id,
            entry.balance_before,
            balance_after,
        )
        return entry
