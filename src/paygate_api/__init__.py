"""FastAPI application exposing the payment callback endpoint."""
