"""API route aggregation.

All routers registered here get mounted in main.py. Authentication is
applied per route in api/users.py because the users router mixes open
endpoints (register, login, reset-password) with protected ones.
"""

from fastapi import APIRouter

from userhub.api.health import router as health_router
from userhub.api.users import router as users_router

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(health_router, tags=["health"])
api_router.include_router(users_router, tags=["users"])
