"""Delta Pay API Router - aggregates the API routes."""

from fastapi import APIRouter

from deltapay.api import admin, auth, health, payments

api_router = APIRouter()

api_router.include_router(health.router)
api_router.include_router(auth.router)
api_router.include_router(payments.router)
api_router.include_router(admin.router)
