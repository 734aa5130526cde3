"""Exception handlers — identity errors → HTTP responses.

Learn: Routes don't catch service errors; they bubble up to the handlers
registered here. Each IdentityError kind keeps its own status and
message. Storage and image-store failures are logged with a traceback
and answered with a generic message that reveals nothing internal.

With settings.conceal_lockout, a locked account answers exactly like a
wrong password so lockout can't be used to probe which usernames exist.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from userhub.config import settings
from userhub.errors import (
    AccountDisabledError,
    AccountLockedError,
    EmailConflictError,
    EmailNotFoundError,
    IdentityError,
    IdentityNotFoundError,
    ImageStoreError,
    InvalidCredentialsError,
    StorageError,
    UnknownRoleError,
    UsernameConflictError,
)
from userhub.storage.images import ImageNotFoundError, PathTraversalError

logger = structlog.get_logger()

PROCESSING_ERROR = "An error occurred while processing the request"
FILE_ERROR = "Error occurred while processing the file"

_STATUS: dict[type[IdentityError], int] = {
    UsernameConflictError: 400,
    EmailConflictError: 400,
    EmailNotFoundError: 400,
    UnknownRoleError: 400,
    IdentityNotFoundError: 404,
    InvalidCredentialsError: 401,
    AccountLockedError: 401,
    AccountDisabledError: 403,
}


def _error(status_code: int, detail: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": detail})


async def identity_error_handler(request: Request, exc: IdentityError) -> JSONResponse:
    if isinstance(exc, AccountLockedError) and settings.conceal_lockout:
        return _error(401, str(InvalidCredentialsError()))
    return _error(_STATUS.get(type(exc), 400), str(exc))


async def storage_error_handler(request: Request, exc: StorageError) -> JSONResponse:
    logger.exception("request.storage_error", path=request.url.path)
    return _error(500, PROCESSING_ERROR)


async def image_error_handler(request: Request, exc: ImageStoreError) -> JSONResponse:
    if isinstance(exc, (ImageNotFoundError, PathTraversalError)):
        return _error(404, "Image not found")
    logger.exception("request.image_error", path=request.url.path)
    return _error(500, FILE_ERROR)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(IdentityError, identity_error_handler)
    app.add_exception_handler(StorageError, storage_error_handler)
    app.add_exception_handler(ImageStoreError, image_error_handler)
