"""Main API router for v1."""
from fastapi import APIRouter

from rollcall.api.v1.endpoints import audit, checkins, moderation, tokens

api_router = APIRouter(prefix="/api/v1")

# Include all endpoint routers
api_router.include_router(checkins.router, prefix="/events", tags=["Check-in"])
api_router.include_router(moderation.router, prefix="/events", tags=["Moderation"])
api_router.include_router(tokens.router, prefix="/events", tags=["QR Tokens"])
api_router.include_router(audit.router, prefix="/events", tags=["Audit"])
