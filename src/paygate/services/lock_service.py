"""Distributed per-order lock backed by DynamoDB.

A lock is one item in the ``payment-locks`` table keyed by ``lock_key``.
Acquisition is a conditional put that succeeds only when no live lock
exists; ``expires_at`` doubles as the table's TTL attribute so a crashed
holder's lock lapses after its lease.

Usage:
    locks = LockService(db)
    with locks.hold(payment_lock_key("ORD-1"), ttl_seconds=30) as acquired:
        if not acquired:
            ...  # someone else is processing this order
"""

import time
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from botocore.exceptions import ClientError

from paygate.utils.logging import get_logger

if TYPE_CHECKING:
    from .dynamodb import DynamoDBService

logger = get_logger(__name__)


def payment_lock_key(order_no: str) -> str:
    """Lock key guarding callback processing for one order."""
    return f"payment_lock:{order_no}"


class LockService:
    """Acquire and release leased locks."""

    LOCKS_TABLE = "payment-locks"

    def __init__(self, db: "DynamoDBService") -> None:
        self.db = db

    def acquire(self, key: str, ttl_seconds: int) -> str | None:
        """Try to take the lock.

        Args:
            key: Lock key
            ttl_seconds: Lease duration

        Returns:
            Owner token if acquired, None if another holder's lease is live.
        """
        now = int(time.time())
        token = uuid.uuid4().hex
        acquired = self.db.put_item(
            self.LOCKS_TABLE,
            {
                "lock_key": key,
                "owner_token": token,
                "acquired_at": datetime.now(timezone.utc).isoformat(),
                "expires_at": now + ttl_seconds,
            },
            condition_expression="attribute_not_exists(lock_key) OR expires_at < :now",
            expression_attribute_values={":now": now},
        )
        if not acquired:
            logger.info("Lock %s is held by another invocation", key)
            return None
        return token

    def release(self, key: str, token: str) -> bool:
        """Release a lock this caller owns.

        Never raises: a lock that cannot be deleted lapses with its lease.

        Returns:
            True if the lock was deleted, False if it was no longer ours
            or the delete failed.
        """
        try:
            released = self.db.delete_item(
                self.LOCKS_TABLE,
                {"lock_key": key},
                condition_expression="owner_token = :token",
                expression_attribute_values={":token": token},
            )
        except ClientError:
            logger.exception("Failed to release lock %s", key)
            return False

        if not released:
            logger.warning("Lock %s was taken over before release (lease expired?)", key)
        return released

    @contextmanager
    def hold(self, key: str, ttl_seconds: int) -> Iterator[bool]:
        """Scoped acquisition: yields whether the lock was taken.

        The lock is released on every exit path, including exceptions.
        """
        token = self.acquire(key, ttl_seconds)
        try:
            yield token is not None
        finally:
            if token is not None:
                self.release(key, token)
