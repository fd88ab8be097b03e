"""API routes package.

- payment_callback: provider callback endpoint
- mock_payment: development-only mock provider

All routers are registered in main.py with the /api prefix.
"""

from paygate_api.routes.mock_payment import router as mock_payment_router
from paygate_api.routes.payment_callback import router as payment_callback_router

__all__ = ["mock_payment_router", "payment_callback_router"]
