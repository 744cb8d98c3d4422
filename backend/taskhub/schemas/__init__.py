"""Pydantic request/response models shared across API routers."""
