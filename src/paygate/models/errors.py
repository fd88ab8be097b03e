"""Standard error codes for the payment callback pipeline.

Messages are returned verbatim to the payment provider; they are the
wire contract the provider's retry logic and support staff see.
"""

from enum import Enum
from typing import Optional


class ErrorCode(str, Enum):
    """Callback rejection reasons."""

    # Transport (ERR_CB_001-ERR_CB_002)
    METHOD_NOT_ALLOWED = "ERR_CB_001"
    IP_NOT_ALLOWED = "ERR_CB_002"

    # Malformed input / authentication (ERR_CB_010-ERR_CB_014)
    INVALID_PARAMS = "ERR_CB_010"
    REQUEST_EXPIRED = "ERR_CB_011"
    SIGNATURE_MISSING = "ERR_CB_012"
    SIGNATURE_INVALID = "ERR_CB_013"
    SECRET_NOT_CONFIGURED = "ERR_CB_014"

    # Concurrency / dedup (ERR_CB_020-ERR_CB_021)
    PROCESSING_IN_PROGRESS = "ERR_CB_020"
    TRADE_NO_REUSED = "ERR_CB_021"

    # Business state (ERR_CB_030-ERR_CB_032)
    ORDER_NOT_FOUND = "ERR_CB_030"
    INVALID_ORDER_STATUS = "ERR_CB_031"
    AMOUNT_MISMATCH = "ERR_CB_032"

    # Failures (ERR_CB_040-ERR_CB_042)
    FULFILLMENT_FAILED = "ERR_CB_040"
    INTERNAL_ERROR = "ERR_CB_041"
    ORDER_STATE_CONFLICT = "ERR_CB_042"


ERROR_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.METHOD_NOT_ALLOWED: "Method not allowed",
    ErrorCode.IP_NOT_ALLOWED: "Forbidden",
    ErrorCode.INVALID_PARAMS: "参数不完整",
    ErrorCode.REQUEST_EXPIRED: "请求已过期",
    ErrorCode.SIGNATURE_MISSING: "签名缺失",
    ErrorCode.SIGNATURE_INVALID: "签名验证失败",
    ErrorCode.SECRET_NOT_CONFIGURED: "服务配置错误",
    ErrorCode.PROCESSING_IN_PROGRESS: "请求处理中，请勿重复提交",
    ErrorCode.TRADE_NO_REUSED: "交易号已被使用",
    ErrorCode.ORDER_NOT_FOUND: "订单不存在",
    ErrorCode.INVALID_ORDER_STATUS: "订单状态不正确",
    ErrorCode.AMOUNT_MISMATCH: "金额不匹配",
    ErrorCode.FULFILLMENT_FAILED: "业务处理失败，请联系客服",
    ErrorCode.INTERNAL_ERROR: "处理失败",
    ErrorCode.ORDER_STATE_CONFLICT: "订单状态已变更，请稍后重试",
}

# HTTP status the provider receives for each rejection
ERROR_HTTP_STATUS: dict[ErrorCode, int] = {
    ErrorCode.METHOD_NOT_ALLOWED: 405,
    ErrorCode.IP_NOT_ALLOWED: 403,
    ErrorCode.INVALID_PARAMS: 400,
    ErrorCode.REQUEST_EXPIRED: 400,
    ErrorCode.SIGNATURE_MISSING: 400,
    ErrorCode.SIGNATURE_INVALID: 403,
    ErrorCode.SECRET_NOT_CONFIGURED: 403,
    ErrorCode.PROCESSING_IN_PROGRESS: 429,
    ErrorCode.TRADE_NO_REUSED: 400,
    ErrorCode.ORDER_NOT_FOUND: 404,
    ErrorCode.INVALID_ORDER_STATUS: 400,
    ErrorCode.AMOUNT_MISMATCH: 400,
    ErrorCode.FULFILLMENT_FAILED: 500,
    ErrorCode.INTERNAL_ERROR: 500,
    ErrorCode.ORDER_STATE_CONFLICT: 500,
}


class CallbackError(Exception):
    """Exception raised when a callback must be rejected.

    Converted to a CallbackResult at the pipeline boundary.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: Optional[str] = None,
    ):
        self.code = code
        self.message = message or ERROR_MESSAGES[code]
        self.status_code = ERROR_HTTP_STATUS[code]
        super().__init__(self.message)


class FulfillmentError(Exception):
    """Raised when granting the purchased product fails."""

    pass
