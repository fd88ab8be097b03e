"""Callback signing, anti-replay and amount checks.

The provider signs callbacks with HMAC-SHA256 over the sorted, non-empty
fields joined as ``key=value&key=value``; the hex digest is sent as ``sign``.
"""

import hashlib
import hmac
import logging
import secrets
import time
import uuid
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal

logger = logging.getLogger(__name__)

UNKNOWN_IP = "unknown"
_PLACEHOLDER_MARKER = "REPLACE_WITH"


@dataclass(frozen=True)
class SignatureResult:
    """Outcome of a signature check."""

    valid: bool
    error: str | None = None


def canonical_string(fields: Mapping[str, str | int]) -> str:
    """Build the string the provider signs.

    Keys are sorted; ``sign`` and empty values are left out.
    """
    return "&".join(
        f"{key}={fields[key]}"
        for key in sorted(fields)
        if key != "sign" and fields[key] not in ("", None)
    )


def sign_callback(fields: Mapping[str, str | int], secret: str) -> str:
    """Compute the callback signature for the given fields."""
    return hmac.new(
        secret.encode("utf-8"),
        canonical_string(fields).encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


def is_secret_configured(secret: str | None) -> bool:
    """False for blank secrets and unreplaced template placeholders."""
    return bool(secret) and _PLACEHOLDER_MARKER not in secret


def verify_callback_signature(
    fields: Mapping[str, str | int],
    sign: str,
    secret: str,
) -> SignatureResult:
    """Verify a provider callback signature in constant time.

    Args:
        fields: Signed callback fields (order_no, trade_no, amount, ...)
        sign: Signature supplied by the provider
        secret: Shared signing secret

    Returns:
        SignatureResult; error carries the caller-visible reason.
    """
    if not is_secret_configured(secret):
        logger.error("Payment signing secret is not configured")
        return SignatureResult(valid=False, error="服务配置错误")

    expected = sign_callback(fields, secret)
    if not hmac.compare_digest(sign.encode("utf-8"), expected.encode("utf-8")):
        return SignatureResult(valid=False, error="签名验证失败")
    return SignatureResult(valid=True)


def validate_timestamp(
    timestamp: str | int | float,
    max_age_seconds: int = 300,
    now: float | None = None,
) -> bool:
    """Check a unix-seconds timestamp is within max_age_seconds of now.

    Fractional seconds are truncated. Future timestamps are held to the
    same window. Unparsable or non-finite values fail.
    """
    try:
        ts = int(Decimal(str(timestamp).strip()))
    except (ArithmeticError, TypeError, ValueError):
        return False
    current = int(now if now is not None else time.time())
    return abs(current - ts) <= max_age_seconds


def parse_amount(amount: str | int | float) -> int:
    """Normalize a callback amount to minor currency units.

    Integers are already minor units. Strings and floats are major units
    and are scaled by 100 with half-up rounding.

    Raises:
        ValueError: If the amount is not numeric.
    """
    if isinstance(amount, bool):
        raise ValueError(f"Invalid amount: {amount!r}")
    if isinstance(amount, int):
        return amount
    try:
        major = Decimal(str(amount).strip())
    except ArithmeticError as e:
        raise ValueError(f"Invalid amount: {amount!r}") from e
    if not major.is_finite():
        raise ValueError(f"Invalid amount: {amount!r}")
    return int((major * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def format_amount(amount_minor: int) -> str:
    """Render minor units as a two-decimal major-unit string."""
    return f"{Decimal(amount_minor) / 100:.2f}"


def validate_amount(paid_amount: int, order_amount: int, tolerance: int = 0) -> bool:
    """Amounts must match within tolerance (exact by default)."""
    return abs(paid_amount - order_amount) <= tolerance


def resolve_client_ip(headers: Mapping[str, str]) -> str:
    """Resolve the caller IP from proxy headers.

    Priority: CF-Connecting-IP, first X-Forwarded-For hop, X-Real-IP.
    """
    headers = {name.lower(): value for name, value in headers.items()}
    ip = headers.get("cf-connecting-ip")
    if ip:
        return ip.strip()
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop
    real_ip = headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    return UNKNOWN_IP


def is_callback_ip_allowed(
    ip: str,
    allowed_ips: Iterable[str],
    development_mode: bool,
) -> bool:
    """Check the caller against the provider IP allow-list.

    Development mode skips the check. An empty allow-list lets every
    caller through and logs a warning.
    """
    if development_mode:
        return True

    allowed = {candidate.strip() for candidate in allowed_ips if candidate.strip()}
    if not allowed:
        logger.warning("Payment callback IP allow-list is empty; configure it in production")
        return True

    return ip in allowed


def generate_order_no(now: datetime | None = None) -> str:
    """Order number: ORD + UTC yyyymmddHHMMSS + 6 random characters."""
    moment = now or datetime.now(timezone.utc)
    return f"ORD{moment:%Y%m%d%H%M%S}{secrets.token_hex(3).upper()}"


def generate_nonce() -> str:
    """Random 32-character hex nonce."""
    return uuid.uuid4().hex
