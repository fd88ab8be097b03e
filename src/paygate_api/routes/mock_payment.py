"""Development-only mock payment provider.

GET /api/payment/mock-complete?orderNo=...&simulate=success|failed builds a
provider-style callback for an order, signs it with the configured secret
and runs it through the real callback pipeline. Outside development mode
the route answers 404.
"""

import time

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from paygate.config import CallbackSettings
from paygate.models import CallbackError, CallbackStatus, ErrorCode
from paygate.services.callback_handler import PaymentCallbackHandler
from paygate.services.order_repository import OrderRepository
from paygate.services.signature import format_amount, generate_nonce, sign_callback
from paygate.utils.logging import get_logger
from paygate_api.dependencies import (
    get_callback_handler,
    get_callback_settings,
    get_order_repository,
)
from paygate_api.models.callback import CallbackResponse

logger = get_logger(__name__)

router = APIRouter(tags=["payment"])


@router.get(
    "/payment/mock-complete",
    summary="Simulate a provider callback (development only)",
    response_model=CallbackResponse,
    responses={404: {"description": "Not in development mode, or unknown order"}},
)
async def mock_complete(
    request: Request,
    order_no: str = Query(..., alias="orderNo", min_length=1),
    simulate: CallbackStatus = Query(default=CallbackStatus.SUCCESS),
    settings: CallbackSettings = Depends(get_callback_settings),
    orders: OrderRepository = Depends(get_order_repository),
    handler: PaymentCallbackHandler = Depends(get_callback_handler),
) -> JSONResponse:
    if not settings.development_mode:
        return JSONResponse(status_code=404, content={"success": False, "error": "Not found"})

    order = orders.get_order(order_no)
    if order is None:
        raise CallbackError(ErrorCode.ORDER_NOT_FOUND)

    nonce = generate_nonce()
    params: dict[str, str] = {
        "order_no": order.order_no,
        "trade_no": f"MOCK{nonce[:16].upper()}",
        "amount": format_amount(order.amount),
        "status": simulate.value,
        "timestamp": str(int(time.time())),
        "nonce": nonce,
    }
    params["sign"] = sign_callback(params, settings.payment_secret)

    logger.info("Mock provider completing order %s as %s", order_no, simulate.value)
    result = handler.handle("POST", request.headers, params)
    return JSONResponse(status_code=result.status_code, content=result.body())
