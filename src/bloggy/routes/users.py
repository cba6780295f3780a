from typing import List, Optional

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, Request, UploadFile, status
from fastapi.responses import PlainTextResponse

from bloggy.dependencies import get_notifier, get_uploader, get_user_repository
from bloggy.errors import Conflict, NotFound, ValidationError
from bloggy.models import User
from bloggy.notifications import WELCOME, EmailNotifier
from bloggy.schemas import UserCreate, UserCreatedResponse, UserPublic, UserUpdate, parse_payload
from bloggy.security import hash_password, require_token
from bloggy.store import UserRepository
from bloggy.uploads import REMOTE, USER_IMAGE_FOLDER, MediaUploader

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["Users"])

USER_NOT_FOUND = "The requested user does not exist"


@router.get("/getUsers", response_model=List[UserPublic], dependencies=[Depends(require_token)])
async def get_users(request: Request, users: UserRepository = Depends(get_user_repository)):
    """List users, filtered by firstName, lastName or email substrings"""
    found = await users.find_users(dict(request.query_params))
    return [UserPublic.from_document(user) for user in found]


@router.get("/getUsers/ByName/{query}", response_model=List[UserPublic])
async def get_users_by_name(query: str, users: UserRepository = Depends(get_user_repository)):
    """Search users by first name"""
    found = await users.find_users_by_first_name(query)
    if not found:
        raise NotFound("User not found")
    return [UserPublic.from_document(user) for user in found]


@router.get("/getUsers/{user_id}", response_model=UserPublic)
async def get_user(user_id: str, users: UserRepository = Depends(get_user_repository)):
    """Get user by ID"""
    user = await users.find_user_by_id(user_id)
    if user is None:
        raise NotFound(USER_NOT_FOUND)
    return UserPublic.from_document(user)


@router.post("/createUser", response_model=UserCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    background_tasks: BackgroundTasks,
    first_name: Optional[str] = Form(None, alias="firstName"),
    last_name: Optional[str] = Form(None, alias="lastName"),
    email: Optional[str] = Form(None),
    password: Optional[str] = Form(None),
    date_of_birth: Optional[str] = Form(None, alias="dateOfBirth"),
    avatar: Optional[UploadFile] = File(None),
    users: UserRepository = Depends(get_user_repository),
    uploader: MediaUploader = Depends(get_uploader),
    notifier: EmailNotifier = Depends(get_notifier),
):
    """Register a new user with an avatar image"""
    fields = {
        "firstName": first_name,
        "lastName": last_name,
        "email": email,
        "password": password,
        "dateOfBirth": date_of_birth,
    }
    payload = parse_payload(UserCreate, {k: v for k, v in fields.items() if v is not None})
    if avatar is None:
        raise ValidationError(["Avatar image is required"])

    if await users.find_user_by_email(payload.email) is not None:
        raise Conflict("Conflict. User already exists.")

    avatar_url = await uploader.store(avatar, REMOTE, field_name="avatar", folder=USER_IMAGE_FOLDER)
    user = await users.insert_user(User(
        firstName=payload.firstName,
        lastName=payload.lastName,
        email=payload.email,
        passwordHash=hash_password(payload.password),
        avatarUrl=avatar_url,
        dateOfBirth=payload.dateOfBirth,
    ))

    background_tasks.add_task(notifier.send, user.email, WELCOME, {"name": user.firstName})
    logger.info("user_created", user_id=str(user.id))
    return UserCreatedResponse(statusCode=status.HTTP_201_CREATED, payload=UserPublic.from_document(user))


@router.patch("/updateUser/{user_id}", response_model=UserPublic)
async def update_user(user_id: str, payload: UserUpdate,
                      users: UserRepository = Depends(get_user_repository)):
    """Partially update a user"""
    existing = await users.find_user_by_id(user_id)
    if existing is None:
        raise NotFound(USER_NOT_FOUND)

    changes = payload.model_dump(exclude_none=True)
    if "password" in changes:
        changes["passwordHash"] = hash_password(changes.pop("password"))
    if changes.get("email") and changes["email"] != existing.email:
        if await users.find_user_by_email(changes["email"]) is not None:
            raise Conflict("Conflict. User already exists.")

    updated = await users.update_user(user_id, changes)
    if updated is None:
        raise NotFound(USER_NOT_FOUND)
    logger.info("user_updated", user_id=user_id, fields=sorted(changes))
    return UserPublic.from_document(updated)


@router.patch("/updateUser/{user_id}/avatar", response_model=UserPublic)
async def update_user_avatar(
    user_id: str,
    avatar: UploadFile = File(...),
    users: UserRepository = Depends(get_user_repository),
    uploader: MediaUploader = Depends(get_uploader),
):
    """Replace a user's avatar image"""
    if await users.find_user_by_id(user_id) is None:
        raise NotFound(USER_NOT_FOUND)

    avatar_url = await uploader.store(avatar, REMOTE, field_name="avatar", folder=USER_IMAGE_FOLDER)
    updated = await users.update_user(user_id, {"avatarUrl": avatar_url})
    if updated is None:
        raise NotFound(USER_NOT_FOUND)
    return UserPublic.from_document(updated)


@router.delete("/deleteUser/{user_id}", response_class=PlainTextResponse)
async def delete_user(user_id: str, users: UserRepository = Depends(get_user_repository)):
    """Delete user by ID"""
    if not await users.delete_user(user_id):
        raise NotFound(USER_NOT_FOUND)
    logger.info("user_deleted", user_id=user_id)
    return PlainTextResponse(f"User with {user_id} successfully removed")
