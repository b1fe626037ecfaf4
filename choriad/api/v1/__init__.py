"""
API v1 router initialization and setup.
"""
from fastapi import APIRouter
from .endpoints import webhooks, payments

api_router = APIRouter()

api_router.include_router(
    webhooks.router,
    prefix="/flutterwave",
    tags=["webhooks"]
)

api_router.include_router(
    payments.router,
    prefix="/payments",
    tags=["payments"]
)
