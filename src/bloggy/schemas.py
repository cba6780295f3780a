from datetime import datetime
from typing import Any, Dict, List, Optional, Type, TypeVar

import pydantic
from email_validator import EmailNotValidError, validate_email
from pydantic import BaseModel, ConfigDict, Field, field_validator

from bloggy.errors import ValidationError, format_validation_error
from bloggy.models import Author, BlogPost, Comment, ReadTime, User
from bloggy.security import MAX_PASSWORD_BYTES, password_too_long

ModelT = TypeVar("ModelT", bound=BaseModel)


def parse_payload(model_cls: Type[ModelT], data: Dict[str, Any]) -> ModelT:
    """Validate data against model_cls, raising the API's 400 error"""
    try:
        return model_cls(**data)
    except pydantic.ValidationError as e:
        raise ValidationError([format_validation_error(error) for error in e.errors()])


def _check_email(value: str) -> str:
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError:
        raise ValueError("Email is not valid.")
    return value


def _require_text(value: Optional[str], message: str) -> str:
    if value is None or not str(value).strip():
        raise ValueError(message)
    return str(value).strip()


def _check_password(value: str) -> str:
    if len(value) < 8:
        raise ValueError("password must contain at least 8 characters")
    if password_too_long(value):
        raise ValueError(f"password must contain at most {MAX_PASSWORD_BYTES} bytes")
    return value


def _check_read_time(value: Optional[int]) -> Optional[int]:
    if value is not None and value < 0:
        raise ValueError("Read time must not be negative")
    return value

#==============================================================================
# REQUEST MODELS
#==============================================================================

class LoginRequest(BaseModel):
    email: str
    password: str


class UserCreate(BaseModel):
    model_config = ConfigDict(validate_default=True)

    firstName: str = ""
    lastName: str = ""
    email: str = ""
    password: str = ""
    dateOfBirth: str = ""

    @field_validator("firstName")
    @classmethod
    def first_name_present(cls, v):
        return _require_text(v, "First name must be a non-empty string")

    @field_validator("lastName")
    @classmethod
    def last_name_present(cls, v):
        return _require_text(v, "Last name must be a non-empty string")

    @field_validator("email")
    @classmethod
    def email_valid(cls, v):
        return _check_email(v.strip())

    @field_validator("password")
    @classmethod
    def password_length(cls, v):
        return _check_password(v)

    @field_validator("dateOfBirth")
    @classmethod
    def date_of_birth_present(cls, v):
        return _require_text(v, "Date of birth must be a non-empty string")


class UserUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    firstName: Optional[str] = None
    lastName: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    dateOfBirth: Optional[str] = None

    @field_validator("firstName", "lastName", "dateOfBirth")
    @classmethod
    def not_blank(cls, v, info):
        if v is None:
            return v
        return _require_text(v, f"{info.field_name} must be a non-empty string")

    @field_validator("email")
    @classmethod
    def email_valid(cls, v):
        return None if v is None else _check_email(v.strip())

    @field_validator("password")
    @classmethod
    def password_length(cls, v):
        return None if v is None else _check_password(v)


class BlogPostCreate(BaseModel):
    category: Optional[str] = None
    title: str
    # filled in once the cover image has been uploaded
    cover: Optional[str] = None
    readTime: ReadTime = Field(default_factory=ReadTime)
    author: Author
    # recipient of the post-published email
    authorEmail: Optional[str] = None
    content: str

    @field_validator("authorEmail")
    @classmethod
    def author_email_valid(cls, v):
        return None if v is None else _check_email(v.strip())

    @field_validator("readTime")
    @classmethod
    def read_time_positive(cls, v):
        _check_read_time(v.value)
        return v

    @field_validator("title")
    @classmethod
    def title_present(cls, v):
        return _require_text(v, "Title must be a non-empty string")

    @field_validator("content")
    @classmethod
    def content_present(cls, v):
        return _require_text(v, "Content must be a non-empty string")

    @field_validator("author")
    @classmethod
    def author_named(cls, v):
        v.name = _require_text(v.name, "Author name must be a non-empty string")
        return v


class ReadTimeUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    value: Optional[int] = None
    unit: Optional[str] = None

    @field_validator("value")
    @classmethod
    def value_positive(cls, v):
        return _check_read_time(v)


class AuthorUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = None
    avatarUrl: Optional[str] = None

    @field_validator("name")
    @classmethod
    def name_present(cls, v):
        return None if v is None else _require_text(v, "Author name must be a non-empty string")


class BlogPostUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    category: Optional[str] = None
    title: Optional[str] = None
    cover: Optional[str] = None
    readTime: Optional[ReadTimeUpdate] = None
    author: Optional[AuthorUpdate] = None
    content: Optional[str] = None

    @field_validator("title", "content", "cover")
    @classmethod
    def not_blank(cls, v, info):
        if v is None:
            return v
        return _require_text(v, f"{info.field_name} must be a non-empty string")


class CommentCreate(BaseModel):
    content: str
    commentAuthorName: str
    commentAuthorAvatar: Optional[str] = None

    @field_validator("content")
    @classmethod
    def content_present(cls, v):
        return _require_text(v, "Comment content must be a non-empty string")

    @field_validator("commentAuthorName")
    @classmethod
    def author_present(cls, v):
        return _require_text(v, "Comment author name must be a non-empty string")

#==============================================================================
# RESPONSE MODELS
#==============================================================================

class UserPublic(BaseModel):
    """User as returned by the API, never carries the password hash"""

    id: str
    firstName: str
    lastName: str
    email: str
    avatarUrl: str
    dateOfBirth: str
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None

    @classmethod
    def from_document(cls, user: User) -> "UserPublic":
        return cls(id=str(user.id), **user.model_dump(exclude={"id", "passwordHash", "revision_id"}))


class BlogPostPublic(BaseModel):
    id: str
    category: Optional[str] = None
    title: str
    cover: str
    readTime: ReadTime
    author: Author
    content: str
    comments: List[Comment] = []

    @classmethod
    def from_document(cls, post: BlogPost) -> "BlogPostPublic":
        return cls(id=str(post.id), **post.model_dump(exclude={"id", "revision_id"}))


class MessageResponse(BaseModel):
    statusCode: int
    message: str


class LoginResponse(MessageResponse):
    token: str


class UserCreatedResponse(BaseModel):
    statusCode: int = 201
    payload: UserPublic


class BlogPostCreatedResponse(BaseModel):
    statusCode: int = 201
    payload: BlogPostPublic


class UploadResponse(BaseModel):
    source: str
