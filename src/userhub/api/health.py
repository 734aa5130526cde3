"""Health check endpoint.

Learn: Reports each dependency separately: the database (a SELECT 1
round-trip) and the profile-image directory (exists or can be created,
and is writable). The endpoint itself always answers 200 so a load
balancer can tell "process up, dependency down" apart from "process down".
"""

import asyncio
import os

from fastapi import APIRouter, Depends
from sqlalchemy import text

from userhub import __version__
from userhub.container import get_image_store
from userhub.db.engine import engine
from userhub.storage.images import ProfileImageStore

router = APIRouter()


async def _check_database() -> str:
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        return f"error: {type(e).__name__}"
    return "ok"


def _check_image_dir(store: ProfileImageStore) -> str:
    try:
        store.base_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        return f"error: {e.strerror or type(e).__name__}"
    if not os.access(store.base_dir, os.W_OK):
        return "error: not writable"
    return "ok"


@router.get("/health")
async def health_check(images: ProfileImageStore = Depends(get_image_store)):
    checks = {
        "database": await _check_database(),
        "image_store": await asyncio.to_thread(_check_image_dir, images),
    }
    healthy = all(v == "ok" for v in checks.values())
    return {
        "status": "healthy" if healthy else "degraded",
        "server": "ok",
        "version": __version__,
        **checks,
    }
