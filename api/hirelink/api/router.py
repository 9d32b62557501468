from fastapi import APIRouter

from hirelink.api.routes import conversations, employment, health, hires, live, messages, notifications, submissions

api_router = APIRouter()
api_router.include_router(health.router, tags=["health"])
api_router.include_router(conversations.router, prefix="/conversations", tags=["messaging"])
api_router.include_router(messages.router, prefix="/messages", tags=["messaging"])
api_router.include_router(submissions.router, tags=["messaging"])
api_router.include_router(hires.router, prefix="/hires", tags=["hiring"])
api_router.include_router(employment.router, prefix="/employment", tags=["hiring"])
api_router.include_router(employment.maintenance_router, prefix="/maintenance", tags=["maintenance"])
api_router.include_router(notifications.router, prefix="/notifications", tags=["notifications"])
api_router.include_router(live.router, tags=["live"])
