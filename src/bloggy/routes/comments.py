from typing import List

import structlog
from fastapi import APIRouter, Depends

from bloggy.dependencies import get_comment_repository
from bloggy.errors import NotFound
from bloggy.models import Comment
from bloggy.schemas import CommentCreate, MessageResponse
from bloggy.security import require_token
from bloggy.store import CommentRepository, new_comment_id

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["Comments"], dependencies=[Depends(require_token)])

POST_NOT_FOUND = "The requested post does not exist"


@router.get("/blogPosts/{post_id}/comments", response_model=List[Comment])
async def get_comments(post_id: str, comments: CommentRepository = Depends(get_comment_repository)):
    """List the comments of a post"""
    found = await comments.list_comments(post_id)
    if found is None:
        raise NotFound(POST_NOT_FOUND)
    return found


@router.post("/blogPosts/{post_id}/addComment", response_model=MessageResponse)
async def add_comment(post_id: str, payload: CommentCreate,
                      comments: CommentRepository = Depends(get_comment_repository)):
    """Append a comment to a post"""
    comment = Comment(
        commentId=new_comment_id(),
        authorName=payload.commentAuthorName,
        authorAvatarUrl=payload.commentAuthorAvatar,
        content=payload.content,
    )
    if not await comments.add_comment(post_id, comment):
        raise NotFound(POST_NOT_FOUND)
    logger.info("comment_added", post_id=post_id, comment_id=comment.commentId)
    return MessageResponse(statusCode=200, message="Comment added successfully.")


@router.delete("/blogPosts/{post_id}/comment/{comment_id}", response_model=MessageResponse)
async def delete_comment(post_id: str, comment_id: str,
                         comments: CommentRepository = Depends(get_comment_repository)):
    """Remove a comment from a post"""
    if not await comments.remove_comment(post_id, comment_id):
        raise NotFound(POST_NOT_FOUND)
    logger.info("comment_removed", post_id=post_id, comment_id=comment_id)
    return MessageResponse(statusCode=200, message=f"Comment with id {comment_id} successfully deleted")
