"""Payment provider callback endpoint.

The route only reads the request; every decision (method, IP allow-list,
signature, lock, order state, amount) is made by PaymentCallbackHandler.
No user authentication: callbacks are authenticated by their HMAC signature.
"""

from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from paygate.services.callback_handler import PaymentCallbackHandler
from paygate.utils.logging import get_logger
from paygate_api.dependencies import get_callback_handler
from paygate_api.models.callback import CallbackResponse

logger = get_logger(__name__)

router = APIRouter(tags=["payment"])

# Every method reaches the handler so non-POST requests get its 405 body
CALLBACK_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


async def read_callback_params(request: Request) -> dict[str, Any] | None:
    """Read the callback body as a flat dict.

    JSON when the Content-Type says so, form-encoded otherwise.

    Returns:
        The parameters, or None if the body cannot be parsed.
    """
    content_type = request.headers.get("content-type", "")
    try:
        if "application/json" in content_type:
            data = await request.json()
            return data if isinstance(data, dict) else None
        form = await request.form()
        return {key: value for key, value in form.items()}
    except (ValueError, StarletteHTTPException) as e:
        logger.info("Unreadable callback body (%s): %s", content_type or "no content-type", e)
        return None


@router.api_route(
    "/payment/callback",
    methods=CALLBACK_METHODS,
    summary="Receive payment provider callbacks",
    description="""
Asynchronous payment notification from the provider. Accepts JSON or
form-encoded bodies with order_no, trade_no, amount, status, timestamp,
nonce and an HMAC-SHA256 `sign`.

**Idempotent**: a repeated success for a paid order returns 200 `订单已处理`.
Concurrent duplicates for the same order get 429.
""",
    response_model=CallbackResponse,
    responses={
        400: {"description": "Malformed, stale, reused or mismatched callback", "model": CallbackResponse},
        403: {"description": "IP not allow-listed or bad signature", "model": CallbackResponse},
        404: {"description": "Unknown order", "model": CallbackResponse},
        405: {"description": "Method other than POST", "model": CallbackResponse},
        429: {"description": "Same order is being processed", "model": CallbackResponse},
        500: {"description": "Fulfillment or internal failure", "model": CallbackResponse},
    },
)
async def payment_callback(
    request: Request,
    handler: PaymentCallbackHandler = Depends(get_callback_handler),
) -> JSONResponse:
    params = await read_callback_params(request) if request.method == "POST" else None
    result = handler.handle(request.method, request.headers, params)
    return JSONResponse(status_code=result.status_code, content=result.body())
