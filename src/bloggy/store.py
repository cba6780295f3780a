import functools
import re
import secrets
from typing import Any, Dict, List, Mapping, Optional

import structlog
from beanie import PydanticObjectId
from bson import ObjectId
from pymongo.errors import PyMongoError

from bloggy.errors import Conflict, StorageError, ValidationError
from bloggy.models import BlogPost, Comment, User, utc_now

logger = structlog.get_logger(__name__)

# public query key -> document path
USER_SEARCH_FIELDS = {
    "firstName": "firstName",
    "lastName": "lastName",
    "email": "email",
}

BLOG_POST_SEARCH_FIELDS = {
    "title": "title",
    "category": "category",
    "content": "content",
    "author": "author.name",
}


def storage_operation(func):
    """Wrap driver failures in StorageError"""
    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except PyMongoError as e:
            logger.error("storage_operation_failed", operation=func.__qualname__, error=str(e))
            raise StorageError(detail=str(e))
    return wrapper


def parse_object_id(value: str) -> Optional[PydanticObjectId]:
    if not ObjectId.is_valid(value):
        return None
    return PydanticObjectId(value)


def contains(fragment: str) -> Dict[str, str]:
    """Case-insensitive literal substring match"""
    return {"$regex": f".*{re.escape(fragment)}.*", "$options": "i"}


def substring_filter(query: Optional[Mapping[str, str]], allowed: Mapping[str, str]) -> Dict[str, Any]:
    """Build an AND filter of substring matches over allow-listed fields"""
    if not query:
        return {}
    unknown = sorted(key for key in query if key not in allowed)
    if unknown:
        raise ValidationError([f"Unsupported search field: {key}" for key in unknown])
    return {allowed[key]: contains(value) for key, value in query.items() if value}


def flatten_changes(changes: Mapping[str, Any], prefix: str = "") -> Dict[str, Any]:
    """Turn nested partial updates into dotted $set paths"""
    flat = {}
    for key, value in changes.items():
        path = f"{prefix}{key}"
        if isinstance(value, Mapping):
            flat.update(flatten_changes(value, f"{path}."))
        else:
            flat[path] = value
    return flat


def new_comment_id() -> str:
    return secrets.token_hex(12)

#==============================================================================
# USERS
#==============================================================================

class UserRepository:
    """Data access layer for users"""

    @storage_operation
    async def find_users(self, filters: Optional[Mapping[str, str]] = None) -> List[User]:
        return await User.find(substring_filter(filters, USER_SEARCH_FIELDS)).to_list()

    @storage_operation
    async def find_users_by_first_name(self, fragment: str) -> List[User]:
        return await User.find({"firstName": contains(fragment)}).to_list()

    @storage_operation
    async def find_user_by_id(self, user_id: str) -> Optional[User]:
        oid = parse_object_id(user_id)
        if oid is None:
            return None
        return await User.get(oid)

    @storage_operation
    async def find_user_by_email(self, email: str) -> Optional[User]:
        return await User.find_one({"email": email})

    @storage_operation
    async def insert_user(self, user: User) -> User:
        if await User.find_one({"email": user.email}) is not None:
            raise Conflict("Conflict. User already exists.")
        await user.insert()
        logger.info("user_inserted", user_id=str(user.id))
        return user

    @storage_operation
    async def update_user(self, user_id: str, changes: Dict[str, Any]) -> Optional[User]:
        oid = parse_object_id(user_id)
        if oid is None:
            return None
        if changes:
            changes = dict(changes, updatedAt=utc_now())
            result = await User.get_motor_collection().update_one({"_id": oid}, {"$set": changes})
            if result.matched_count == 0:
                return None
        return await User.get(oid)

    @storage_operation
    async def delete_user(self, user_id: str) -> bool:
        oid = parse_object_id(user_id)
        if oid is None:
            return False
        result = await User.get_motor_collection().delete_one({"_id": oid})
        return result.deleted_count == 1

#==============================================================================
# BLOG POSTS
#==============================================================================

class BlogPostRepository:
    """Data access layer for blog posts"""

    @storage_operation
    async def find_blog_posts(self, filters: Optional[Mapping[str, str]] = None) -> List[BlogPost]:
        return await BlogPost.find(substring_filter(filters, BLOG_POST_SEARCH_FIELDS)).to_list()

    @storage_operation
    async def find_blog_posts_by_author_name(self, fragment: str) -> List[BlogPost]:
        return await BlogPost.find({"author.name": contains(fragment)}).to_list()

    @storage_operation
    async def find_blog_post_by_id(self, post_id: str) -> Optional[BlogPost]:
        oid = parse_object_id(post_id)
        if oid is None:
            return None
        return await BlogPost.get(oid)

    @storage_operation
    async def insert_blog_post(self, post: BlogPost) -> BlogPost:
        await post.insert()
        logger.info("blog_post_inserted", post_id=str(post.id))
        return post

    @storage_operation
    async def update_blog_post(self, post_id: str, changes: Mapping[str, Any]) -> Optional[BlogPost]:
        oid = parse_object_id(post_id)
        if oid is None:
            return None
        flat = flatten_changes(changes)
        if flat:
            result = await BlogPost.get_motor_collection().update_one({"_id": oid}, {"$set": flat})
            if result.matched_count == 0:
                return None
        return await BlogPost.get(oid)

    @storage_operation
    async def delete_blog_post(self, post_id: str) -> bool:
        oid = parse_object_id(post_id)
        if oid is None:
            return False
        result = await BlogPost.get_motor_collection().delete_one({"_id": oid})
        return result.deleted_count == 1

#==============================================================================
# COMMENTS
#==============================================================================

class CommentRepository:
    """Comments live inside their blog post and change atomically"""

    @storage_operation
    async def list_comments(self, post_id: str) -> Optional[List[Comment]]:
        oid = parse_object_id(post_id)
        if oid is None:
            return None
        post = await BlogPost.get(oid)
        return None if post is None else post.comments

    @storage_operation
    async def add_comment(self, post_id: str, comment: Comment) -> bool:
        oid = parse_object_id(post_id)
        if oid is None:
            return False
        result = await BlogPost.get_motor_collection().update_one(
            {"_id": oid},
            {"$push": {"comments": comment.model_dump()}},
        )
        return result.matched_count == 1

    @storage_operation
    async def remove_comment(self, post_id: str, comment_id: str) -> bool:
        """False only when the post itself is missing"""
        oid = parse_object_id(post_id)
        if oid is None:
            return False
        result = await BlogPost.get_motor_collection().update_one(
            {"_id": oid},
            {"$pull": {"comments": {"commentId": comment_id}}},
        )
        return result.matched_count == 1
