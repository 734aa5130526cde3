"""Users API — registration, login, administration, profile images.

Learn: Routes handle HTTP concerns (status codes, headers, auth checks);
UserService handles the identity rules. Errors raised by the service are
turned into responses by the handlers in api/errors.py, so no route
catches them itself.

- POST   /users/register            → self-service sign-up (open)
- POST   /users/login               → credentials → user + JWT (open)
- POST   /users/reset-password      → email a new password (open)
- GET    /users                     → list users (authenticated)
- GET    /users/{username}          → one user (authenticated)
- POST   /users                     → admin create (user:create)
- PUT    /users/{username}          → update (user:update)
- DELETE /users/{id}                → delete (user:delete)
- PUT    /users/{username}/profile-image → raw image bytes (authenticated)
- GET    /users/image/{username}/{filename} → image bytes (open)
"""

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from userhub.auth.dependencies import get_current_user, require_authority
from userhub.auth.roles import USER_CREATE, USER_DELETE, USER_UPDATE
from userhub.api.schemas import (
    AddUserRequest,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    RegisterRequest,
    ResetPasswordRequest,
    UpdateUserRequest,
    UserRead,
)
from userhub.container import get_notifier, user_service_for
from userhub.db.engine import get_db
from userhub.services.notifier import EmailNotifier
from userhub.services.user_service import UserService

router = APIRouter(prefix="/users")

JWT_TOKEN_HEADER = "Jwt-Token"
EMAIL_SENT = "An email with a new password was sent to: "
USER_DELETED_SUCCESSFULLY = "User deleted successfully"


def get_user_service(db: AsyncSession = Depends(get_db)) -> UserService:
    return user_service_for(db)


# ─── Self-service ───────────────────────────────────────


@router.post("/register", response_model=UserRead, status_code=201)
async def register(
    body: RegisterRequest,
    svc: UserService = Depends(get_user_service),
    notifier: EmailNotifier = Depends(get_notifier),
):
    """Create an account with role USER; the password is emailed."""
    issued = await svc.register(
        body.first_name, body.last_name, body.username, body.email
    )
    await notifier.send_generated_password(
        body.first_name, issued.password, body.email
    )
    return UserRead.from_identity(issued.identity)


@router.post("/login", response_model=LoginResponse)
async def login(
    body: LoginRequest,
    response: Response,
    svc: UserService = Depends(get_user_service),
):
    """Username/password → user info + JWT (also in the Jwt-Token header)."""
    result = await svc.login(body.username, body.password)
    response.headers[JWT_TOKEN_HEADER] = result.token
    return LoginResponse(
        user=UserRead.from_identity(result.identity),
        access_token=result.token,
    )


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(
    body: ResetPasswordRequest,
    svc: UserService = Depends(get_user_service),
    notifier: EmailNotifier = Depends(get_notifier),
):
    issued = await svc.reset_password(body.email)
    await notifier.send_generated_password(
        issued.identity.first_name, issued.password, body.email
    )
    return MessageResponse(message=EMAIL_SENT + body.email)


# ─── Directory ──────────────────────────────────────────


@router.get("", response_model=list[UserRead], dependencies=[Depends(get_current_user)])
async def list_users(svc: UserService = Depends(get_user_service)):
    return [UserRead.from_identity(i) for i in await svc.list_users()]


@router.get(
    "/{username}", response_model=UserRead, dependencies=[Depends(get_current_user)]
)
async def get_user(username: str, svc: UserService = Depends(get_user_service)):
    identity = await svc.find_by_username(username)
    if not identity:
        raise HTTPException(status_code=404, detail="User not found")
    return UserRead.from_identity(identity)


# ─── Administration ─────────────────────────────────────


@router.post(
    "",
    response_model=UserRead,
    status_code=201,
    dependencies=[Depends(require_authority(USER_CREATE))],
)
async def add_user(
    body: AddUserRequest,
    svc: UserService = Depends(get_user_service),
    notifier: EmailNotifier = Depends(get_notifier),
):
    issued = await svc.add_new(
        body.first_name,
        body.last_name,
        body.username,
        body.email,
        role=body.role,
        is_active=body.is_active,
        is_not_locked=body.is_not_locked,
    )
    await notifier.send_generated_password(
        body.first_name, issued.password, body.email
    )
    return UserRead.from_identity(issued.identity)


@router.put(
    "/{username}",
    response_model=UserRead,
    dependencies=[Depends(require_authority(USER_UPDATE))],
)
async def update_user(
    username: str,
    body: UpdateUserRequest,
    svc: UserService = Depends(get_user_service),
):
    identity = await svc.update(
        username,
        body.first_name,
        body.last_name,
        body.username,
        body.email,
        role=body.role,
        is_not_locked=body.is_not_locked,
        is_active=body.is_active,
    )
    return UserRead.from_identity(identity)


@router.delete(
    "/{user_id}",
    response_model=MessageResponse,
    dependencies=[Depends(require_authority(USER_DELETE))],
)
async def delete_user(user_id: int, svc: UserService = Depends(get_user_service)):
    await svc.delete(user_id)
    return MessageResponse(message=USER_DELETED_SUCCESSFULLY)


# ─── Profile images ─────────────────────────────────────


@router.put(
    "/{username}/profile-image",
    response_model=UserRead,
    dependencies=[Depends(get_current_user)],
)
async def update_profile_image(
    username: str,
    request: Request,
    svc: UserService = Depends(get_user_service),
):
    """Replace the profile image. The request body is the raw image."""
    image = await request.body()
    if not image:
        raise HTTPException(status_code=400, detail="Image body is empty")
    identity = await svc.associate_profile_image(username, image)
    return UserRead.from_identity(identity)


@router.get("/image/{username}/{filename}")
async def get_profile_image(
    username: str,
    filename: str,
    svc: UserService = Depends(get_user_service),
):
    data = await svc.read_profile_image(username, filename)
    return Response(content=data, media_type="image/jpeg")
