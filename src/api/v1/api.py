from fastapi import APIRouter

from .dob import router as dob_router
from .feedback import router as feedback_router
from .health import router as health_router


api_router = APIRouter()

api_router.include_router(health_router, tags=["health"])
api_router.include_router(dob_router)
api_router.include_router(feedback_router)
