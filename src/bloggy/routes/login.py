import structlog
from fastapi import APIRouter, Depends, Response

from bloggy.config import Settings
from bloggy.dependencies import get_app_settings, get_user_repository
from bloggy.errors import NotFound, Unauthorized
from bloggy.schemas import LoginRequest, LoginResponse
from bloggy.security import issue_token, verify_password
from bloggy.store import UserRepository

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["Authentication"])


@router.post("/login", response_model=LoginResponse)
async def login(
    payload: LoginRequest,
    response: Response,
    users: UserRepository = Depends(get_user_repository),
    settings: Settings = Depends(get_app_settings),
):
    """Exchange email and password for a session token"""
    user = await users.find_user_by_email(payload.email)
    if user is None:
        raise NotFound("User not found")

    if not verify_password(payload.password, user.passwordHash):
        logger.info("login_rejected", user_id=str(user.id))
        raise Unauthorized("Unauthorized")

    token = issue_token({
        "firstName": user.firstName,
        "lastName": user.lastName,
        "email": user.email,
        "avatarUrl": user.avatarUrl,
    }, settings)

    response.headers["Authorization"] = token
    logger.info("login_succeeded", user_id=str(user.id))
    return LoginResponse(statusCode=200, message="Login successful", token=token)
