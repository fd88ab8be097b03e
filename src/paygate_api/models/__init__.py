"""API-specific response models."""

from paygate_api.models.callback import CallbackResponse, HealthResponse

__all__ = ["CallbackResponse", "HealthResponse"]
