"""API route aggregation.

All routers registered here get mounted in main.py.

Learn: Both routers are open at the include_router level. Routes that need
a signed-in user (revoke-sessions) declare get_current_session themselves,
because the auth router also serves anonymous sign-up and sign-in.
"""

from fastapi import APIRouter

from warden.api.auth import router as auth_router
from warden.api.health import router as health_router

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(health_router, tags=["health"])
api_router.include_router(auth_router, tags=["auth"])
