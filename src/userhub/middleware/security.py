"""Security headers middleware.

Learn: Static headers go on every response. The profile-image endpoint
serves user-supplied bytes, so nosniff matters there most. JSON under
/api/v1/users can carry tokens and personal data and is marked no-store;
images under /api/v1/users/image/ stay cacheable. HSTS is only sent over
HTTPS, where the browser will honour it.
"""

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

STATIC_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}
HSTS = "max-age=31536000; includeSubDomains"

_USERS_PREFIX = "/api/v1/users"
_IMAGES_PREFIX = "/api/v1/users/image/"


def _is_private(path: str) -> bool:
    return path.startswith(_USERS_PREFIX) and not path.startswith(_IMAGES_PREFIX)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        response: Response = await call_next(request)
        response.headers.update(STATIC_HEADERS)
        if _is_private(request.url.path):
            response.headers["Cache-Control"] = "no-store"
        if request.url.scheme == "https":
            response.headers["Strict-Transport-Security"] = HSTS
        return response
