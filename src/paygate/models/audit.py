"""Audit log record model."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .enums import AuditAction, RiskLevel


class AuditRecord(BaseModel):
    """Append-only record of a security- or money-relevant decision.

    Used for:
    - Forensics: who paid what, from where, and why a callback was refused
    - Alerting: high-risk records feed fraud review
    """

    model_config = ConfigDict(strict=True)

    audit_id: str = Field(..., description="Unique record ID", examples=["AUD-3F2A9C1B7D4E"])
    action: AuditAction
    user_id: int | None = Field(default=None, description="Acting or affected user")
    target_type: str | None = Field(default=None, examples=["order", "shop_item"])
    target_id: str | None = Field(default=None, examples=["ORD-1"])
    metadata: dict[str, Any] = Field(default_factory=dict)
    risk_level: RiskLevel = RiskLevel.NORMAL
    ip_address: str | None = None
    created_at: datetime
