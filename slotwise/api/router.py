"""
API router - aggregates all route modules.
"""
from fastapi import APIRouter
from slotwise.api.availability import router as availability_router
from slotwise.api.appointments import router as appointments_router
from slotwise.api.health import router as health_router

api_router = APIRouter()
api_router.include_router(availability_router)
api_router.include_router(appointments_router)
api_router.include_router(health_router)
