"""Append-only audit log.

Every security- or money-relevant callback decision is written to the
``audit-logs`` table. Records are only ever inserted.
"""

import datetime as dt
import json
import uuid
from typing import TYPE_CHECKING, Any

from botocore.exceptions import BotoCoreError, ClientError

from paygate.models import AuditAction, AuditRecord, RiskLevel
from paygate.utils.logging import get_logger

if TYPE_CHECKING:
    from .dynamodb import DynamoDBService

logger = get_logger(__name__)


class AuditLogService:
    """Writes audit records to DynamoDB."""

    AUDIT_TABLE = "audit-logs"

    def __init__(self, db: "DynamoDBService") -> None:
        self.db = db

    def log(
        self,
        action: AuditAction,
        *,
        user_id: int | None = None,
        target_type: str | None = None,
        target_id: str | None = None,
        metadata: dict[str, Any] | None = None,
        risk_level: RiskLevel = RiskLevel.NORMAL,
        ip_address: str | None = None,
    ) -> AuditRecord:
        """Record an audit entry.

        A failed write is logged with its traceback and does not propagate;
        the callback outcome must not depend on the audit store.

        Returns:
            The record that was (or was attempted to be) written.
        """
        record = AuditRecord(
            audit_id=f"AUD-{uuid.uuid4().hex[:12].upper()}",
            action=action,
            user_id=user_id,
            target_type=target_type,
            target_id=target_id,
            metadata=metadata or {},
            risk_level=risk_level,
            ip_address=ip_address,
            created_at=dt.datetime.now(dt.UTC),
        )

        try:
            self.db.put_item(
                self.AUDIT_TABLE,
                self._record_to_item(record),
                condition_expression="attribute_not_exists(audit_id)",
            )
        except (ClientError, BotoCoreError):
            logger.exception(
                "Audit log write failed: action=%s target=%s", action.value, target_id
            )
            return record

        if risk_level == RiskLevel.HIGH:
            logger.warning(
                "High-risk audit: action=%s target=%s metadata=%s",
                action.value,
                target_id,
                record.metadata,
            )
        return record

    def _record_to_item(self, record: AuditRecord) -> dict[str, Any]:
        """Convert AuditRecord to DynamoDB item.

        Metadata is stored as a JSON string so floats and nested values
        round-trip without DynamoDB's Decimal constraints.
        """
        item: dict[str, Any] = {
            "audit_id": record.audit_id,
            "action": record.action.value,
            "risk_level": record.risk_level.value,
            "metadata": json.dumps(record.metadata, ensure_ascii=False, default=str),
            "created_at": record.created_at.isoformat(),
        }
        if record.user_id is not None:
            item["user_id"] = record.user_id
        if record.target_type:
            item["target_type"] = record.target_type
        if record.target_id:
            item["target_id"] = record.target_id
        if record.ip_address:
            item["ip_address"] = record.ip_address
        return item

    def item_to_record(self, item: dict[str, Any]) -> AuditRecord:
        """Convert DynamoDB item back to AuditRecord."""
        return AuditRecord(
            audit_id=item["audit_id"],
            action=AuditAction(item["action"]),
            user_id=int(item["user_id"]) if item.get("user_id") is not None else None,
            target_type=item.get("target_type"),
            target_id=item.get("target_id"),
            metadata=json.loads(item.get("metadata") or "{}"),
            risk_level=RiskLevel(item["risk_level"]),
            ip_address=item.get("ip_address"),
            created_at=dt.datetime.fromisoformat(item["created_at"]),
        )
