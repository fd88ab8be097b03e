"""Payment provider callback pipeline.

Business logic for the callback endpoint, kept separate from HTTP routing
so it can be unit tested with plain dicts and reused by the development
mock provider.

Stages, in order:
1. Transport guard: POST only, provider IP allow-list
2. Payload parsing
3. Authentication: timestamp window, then HMAC signature
4. Per-order distributed lock (held through commit)
5. trade_no dedup across orders
6. Order lookup and state machine (same-state = already processed)
7. Amount reconciliation
8. Trade number binding, fulfillment, then a status commit conditional on
   the order still being in the status it was read in

Every rejection is raised as a CallbackError and converted to a
CallbackResult here; anything else becomes a generic 500.
"""

import datetime as dt
import time
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any, NoReturn

from pydantic import ValidationError

from paygate.models import (
    AuditAction,
    CallbackError,
    CallbackPayload,
    CallbackResult,
    CallbackStatus,
    ErrorCode,
    Order,
    OrderStatus,
    RiskLevel,
)
from paygate.services.lock_service import payment_lock_key
from paygate.services.signature import (
    is_callback_ip_allowed,
    is_secret_configured,
    parse_amount,
    resolve_client_ip,
    validate_amount,
    validate_timestamp,
    verify_callback_signature,
)
from paygate.state_machine import can_transition
from paygate.utils.logging import get_logger, log_callback_event

if TYPE_CHECKING:
    from paygate.config import CallbackSettings

    from .audit_log import AuditLogService
    from .fulfillment import FulfillmentService
    from .lock_service import LockService
    from .order_repository import OrderRepository

logger = get_logger(__name__)

MSG_PAYMENT_SUCCESS = "支付成功"
MSG_ALREADY_PROCESSED = "订单已处理"
MSG_FAILURE_RECORDED = "支付失败已记录"


class PaymentCallbackHandler:
    """Validates provider callbacks and reconciles orders."""

    def __init__(
        self,
        settings: "CallbackSettings",
        orders: "OrderRepository",
        locks: "LockService",
        audit: "AuditLogService",
        fulfillment: "FulfillmentService",
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the handler with its collaborators.

        Args:
            settings: Secret, allow-list, replay window and lock lease
            orders: Order repository
            locks: Distributed lock service
            audit: Audit log sink
            fulfillment: Product delivery dispatcher
            clock: Source of unix time (for tests)
        """
        self.settings = settings
        self.orders = orders
        self.locks = locks
        self.audit = audit
        self.fulfillment = fulfillment
        self._clock = clock

    def handle(
        self,
        method: str,
        headers: Mapping[str, str],
        params: Mapping[str, Any] | None,
    ) -> CallbackResult:
        """Process one callback delivery.

        Args:
            method: HTTP method
            headers: Request headers (for client IP resolution)
            params: Parsed JSON or form body; None if the body was unreadable

        Returns:
            CallbackResult with the HTTP status and JSON body for the provider.
        """
        try:
            return self._process(method, headers, params)
        except CallbackError as e:
            return CallbackResult.fail(e.status_code, e.message)
        except Exception:
            logger.exception("Payment callback error")
            return CallbackResult.fail(500, "处理失败")

    def _process(
        self,
        method: str,
        headers: Mapping[str, str],
        params: Mapping[str, Any] | None,
    ) -> CallbackResult:
        if method.upper() != "POST":
            raise CallbackError(ErrorCode.METHOD_NOT_ALLOWED)

        client_ip = resolve_client_ip(headers)
        self._check_ip(client_ip)

        payload = self._parse(params)
        self._authenticate(payload, client_ip)

        lock_key = payment_lock_key(payload.order_no)
        with self.locks.hold(lock_key, self.settings.lock_duration) as acquired:
            if not acquired:
                log_callback_event(
                    logger, "lock", payload.order_no, result="duplicate"
                )
                raise CallbackError(ErrorCode.PROCESSING_IN_PROGRESS)
            return self._reconcile(payload, client_ip)

    # === Transport & input ===

    def _check_ip(self, client_ip: str) -> None:
        if is_callback_ip_allowed(
            client_ip, self.settings.callback_ips, self.settings.development_mode
        ):
            return
        log_callback_event(
            logger, "ip_guard", None, ip=client_ip, result="rejected"
        )
        self.audit.log(
            AuditAction.PAYMENT_FAILED,
            metadata={"reason": "IP 不在白名单", "ip": client_ip},
            risk_level=RiskLevel.HIGH,
            ip_address=client_ip,
        )
        raise CallbackError(ErrorCode.IP_NOT_ALLOWED)

    def _parse(self, params: Mapping[str, Any] | None) -> CallbackPayload:
        if params is None:
            raise CallbackError(ErrorCode.INVALID_PARAMS)
        try:
            return CallbackPayload.model_validate(dict(params))
        except ValidationError as e:
            logger.info("Malformed callback payload: %s", e.errors(include_url=False))
            raise CallbackError(ErrorCode.INVALID_PARAMS) from e

    def _authenticate(self, payload: CallbackPayload, client_ip: str) -> None:
        # Timestamp window is checked before the signature
        if payload.timestamp and not validate_timestamp(
            payload.timestamp, self.settings.timestamp_validity, now=self._clock()
        ):
            log_callback_event(
                logger, "timestamp", payload.order_no, result="rejected"
            )
            raise CallbackError(ErrorCode.REQUEST_EXPIRED)

        if not payload.sign:
            log_callback_event(
                logger, "signature", payload.order_no, result="rejected", error="missing"
            )
            self.audit.log(
                AuditAction.PAYMENT_FAILED,
                target_id=payload.order_no,
                metadata={"reason": "缺少签名"},
                risk_level=RiskLevel.HIGH,
                ip_address=client_ip,
            )
            raise CallbackError(ErrorCode.SIGNATURE_MISSING)

        result = verify_callback_signature(
            payload.signed_fields(), payload.sign, self.settings.payment_secret
        )
        if not result.valid:
            log_callback_event(
                logger,
                "signature",
                payload.order_no,
                ip=client_ip,
                result="rejected",
                error=result.error,
            )
            self.audit.log(
                AuditAction.PAYMENT_FAILED,
                target_id=payload.order_no,
                metadata={"reason": "签名验证失败", "ip": client_ip},
                risk_level=RiskLevel.HIGH,
                ip_address=client_ip,
            )
            if not is_secret_configured(self.settings.payment_secret):
                raise CallbackError(ErrorCode.SECRET_NOT_CONFIGURED)
            raise CallbackError(ErrorCode.SIGNATURE_INVALID)

    # === Reconciliation (lock held) ===

    def _reconcile(self, payload: CallbackPayload, client_ip: str) -> CallbackResult:
        existing = self.orders.get_order_by_trade_no(payload.trade_no)
        if existing and existing.order_no != payload.order_no:
            self._reject_reused_trade_no(payload, existing.order_no, client_ip)

        order = self.orders.get_order(payload.order_no)
        if order is None:
            raise CallbackError(ErrorCode.ORDER_NOT_FOUND)

        target = (
            OrderStatus.PAID
            if payload.status == CallbackStatus.SUCCESS
            else OrderStatus.FAILED
        )
        if not can_transition(order.status, target):
            if order.status == target:
                log_callback_event(
                    logger, "state", order.order_no, result="duplicate"
                )
                return CallbackResult.ok(MSG_ALREADY_PROCESSED)
            logger.warning(
                "Illegal order transition: %s %s -> %s",
                order.order_no,
                order.status.value,
                target.value,
            )
            raise CallbackError(
                ErrorCode.INVALID_ORDER_STATUS,
                message=f"订单状态不正确: {order.status.value}",
            )

        paid_amount = parse_amount(payload.amount)
        if not validate_amount(paid_amount, order.amount):
            log_callback_event(
                logger,
                "amount",
                order.order_no,
                result="rejected",
                paid_amount=paid_amount,
                order_amount=order.amount,
            )
            self.audit.log(
                AuditAction.PAYMENT_FAILED,
                user_id=order.user_id,
                target_type="order",
                target_id=order.order_no,
                metadata={
                    "paidAmount": paid_amount,
                    "orderAmount": order.amount,
                    "reason": "金额不匹配",
                },
                risk_level=RiskLevel.HIGH,
                ip_address=client_ip,
            )
            raise CallbackError(ErrorCode.AMOUNT_MISMATCH)

        if payload.status == CallbackStatus.SUCCESS:
            return self._complete_payment(order, payload, client_ip)
        return self._record_failure(order, client_ip)

    def _reject_reused_trade_no(
        self,
        payload: CallbackPayload,
        existing_order: str | None,
        client_ip: str,
    ) -> NoReturn:
        log_callback_event(
            logger,
            "dedup",
            payload.order_no,
            trade_no=payload.trade_no,
            result="rejected",
            existing_order=existing_order,
        )
        self.audit.log(
            AuditAction.PAYMENT_FAILED,
            target_id=payload.order_no,
            metadata={
                "reason": "交易号已被使用",
                "trade_no": payload.trade_no,
                "existing_order": existing_order,
            },
            risk_level=RiskLevel.HIGH,
            ip_address=client_ip,
        )
        raise CallbackError(ErrorCode.TRADE_NO_REUSED)

    def _complete_payment(
        self, order: Order, payload: CallbackPayload, client_ip: str
    ) -> CallbackResult:
        """Claim the trade number, deliver, then commit paid.

        The trade number is bound before delivery so two orders cannot both
        be fulfilled under one provider transaction. A delivery failure
        releases it and leaves the order retryable.
        """
        paid_at = dt.datetime.fromtimestamp(int(self._clock()), tz=dt.UTC)

        if not self.orders.bind_trade_no(payload.trade_no, order.order_no):
            holder = self.orders.get_order_by_trade_no(payload.trade_no)
            self._reject_reused_trade_no(
                payload, holder.order_no if holder else None, client_ip
            )

        try:
            self.fulfillment.fulfill(order, payload.trade_no)
        except Exception as e:
            logger.exception("Fulfillment failed for order %s", order.order_no)
            self.orders.release_trade_no(payload.trade_no, order.order_no)
            self.audit.log(
                AuditAction.PAYMENT_FAILED,
                user_id=order.user_id,
                target_type="order",
                target_id=order.order_no,
                metadata={
                    "reason": "业务处理失败",
                    "error": str(e),
                    "tradeNo": payload.trade_no,
                },
                risk_level=RiskLevel.HIGH,
            )
            raise CallbackError(ErrorCode.FULFILLMENT_FAILED) from e

        if not self.orders.mark_paid(
            order.order_no, order.status, payload.trade_no, paid_at
        ):
            self.orders.release_trade_no(payload.trade_no, order.order_no)
            self._state_conflict(order, payload.trade_no, delivered=True)

        self.audit.log(
            AuditAction.PAYMENT_SUCCESS,
            user_id=order.user_id,
            target_type="order",
            target_id=order.order_no,
            metadata={
                "amount": order.amount,
                "productType": order.product_type,
                "productId": order.product_id,
                "tradeNo": payload.trade_no,
            },
        )
        log_callback_event(
            logger,
            "commit",
            order.order_no,
            trade_no=payload.trade_no,
            result="success",
        )
        return CallbackResult.ok(MSG_PAYMENT_SUCCESS)

    def _record_failure(self, order: Order, client_ip: str) -> CallbackResult:
        updated = self.orders.update_order_status(
            order.order_no, OrderStatus.FAILED, expected_status=order.status
        )
        if updated is None:
            self._state_conflict(order, None, delivered=False)

        self.audit.log(
            AuditAction.PAYMENT_FAILED,
            user_id=order.user_id,
            target_type="order",
            target_id=order.order_no,
            metadata={"reason": "支付失败", "ip": client_ip},
            ip_address=client_ip,
        )
        log_callback_event(logger, "commit", order.order_no, result="failed")
        return CallbackResult.ok(MSG_FAILURE_RECORDED)

    def _state_conflict(
        self, order: Order, trade_no: str | None, delivered: bool
    ) -> NoReturn:
        """The order left the status it was read in before the commit landed."""
        current = self.orders.get_order(order.order_no)
        current_status = current.status.value if current else None
        log_callback_event(
            logger,
            "commit",
            order.order_no,
            trade_no=trade_no,
            result="error",
            expected=order.status.value,
            current=current_status,
        )
        self.audit.log(
            AuditAction.PAYMENT_FAILED,
            user_id=order.user_id,
            target_type="order",
            target_id=order.order_no,
            metadata={
                "reason": "订单状态已变更",
                "expectedStatus": order.status.value,
                "currentStatus": current_status,
                "tradeNo": trade_no,
                "delivered": delivered,
            },
            risk_level=RiskLevel.HIGH,
        )
        raise CallbackError(ErrorCode.ORDER_STATE_CONFLICT)
