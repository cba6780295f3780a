from datetime import datetime, timezone
from typing import List, Optional

from beanie import Document
from pydantic import BaseModel, Field


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class User(Document):
    """Registered account, created on signup or first GitHub login"""

    firstName: str
    lastName: str = ""
    email: str
    passwordHash: str
    avatarUrl: str
    dateOfBirth: str
    createdAt: datetime = Field(default_factory=utc_now)
    updatedAt: datetime = Field(default_factory=utc_now)

    class Settings:
        name = "users"


class ReadTime(BaseModel):
    value: int = 3
    unit: str = "min"


class Author(BaseModel):
    name: str
    avatarUrl: Optional[str] = None


class Comment(BaseModel):
    commentId: str
    authorName: str
    authorAvatarUrl: Optional[str] = None
    content: str


class BlogPost(Document):
    category: Optional[str] = None
    title: str
    cover: str
    readTime: ReadTime = Field(default_factory=ReadTime)
    author: Author
    content: str
    comments: List[Comment] = Field(default_factory=list)

    class Settings:
        name = "blogposts"


DOCUMENT_MODELS = [User, BlogPost]
