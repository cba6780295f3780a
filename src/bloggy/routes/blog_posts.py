from typing import List, Optional

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, Request, UploadFile, status

from bloggy.dependencies import get_blog_post_repository, get_notifier, get_uploader
from bloggy.errors import NotFound, ValidationError
from bloggy.models import BlogPost
from bloggy.notifications import POST_PUBLISHED, EmailNotifier
from bloggy.schemas import (
    BlogPostCreate, BlogPostCreatedResponse, BlogPostPublic, BlogPostUpdate,
    MessageResponse, UploadResponse, parse_payload,
)
from bloggy.security import TokenClaims, require_token
from bloggy.store import BlogPostRepository
from bloggy.uploads import BLOG_IMAGE_FOLDER, LOCAL, REMOTE, MediaUploader

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["Blog Posts"])

POST_NOT_FOUND = "The requested post does not exist"


@router.get("/blogPosts", response_model=List[BlogPostPublic], dependencies=[Depends(require_token)])
async def get_blog_posts(request: Request, posts: BlogPostRepository = Depends(get_blog_post_repository)):
    """List posts, filtered by title, category, content or author substrings"""
    found = await posts.find_blog_posts(dict(request.query_params))
    return [BlogPostPublic.from_document(post) for post in found]


@router.get("/blogPosts/ByName/{query}", response_model=List[BlogPostPublic],
            dependencies=[Depends(require_token)])
async def get_blog_posts_by_author(query: str, posts: BlogPostRepository = Depends(get_blog_post_repository)):
    """Search posts by author name"""
    found = await posts.find_blog_posts_by_author_name(query)
    return [BlogPostPublic.from_document(post) for post in found]


@router.get("/blogPosts/{post_id}", response_model=BlogPostPublic, dependencies=[Depends(require_token)])
async def get_blog_post(post_id: str, posts: BlogPostRepository = Depends(get_blog_post_repository)):
    """Get post by ID"""
    post = await posts.find_blog_post_by_id(post_id)
    if post is None:
        raise NotFound(POST_NOT_FOUND)
    return BlogPostPublic.from_document(post)


@router.post("/addBlogPost", response_model=BlogPostCreatedResponse, status_code=status.HTTP_201_CREATED)
async def add_blog_post(
    background_tasks: BackgroundTasks,
    title: Optional[str] = Form(None),
    content: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    read_time_value: Optional[int] = Form(None, alias="readTime[value]"),
    read_time_unit: Optional[str] = Form(None, alias="readTime[unit]"),
    author_name: Optional[str] = Form(None, alias="author[name]"),
    author_email: Optional[str] = Form(None, alias="author[email]"),
    author_avatar: Optional[str] = Form(None, alias="author[avatar]"),
    cover: Optional[UploadFile] = File(None),
    claims: TokenClaims = Depends(require_token),
    posts: BlogPostRepository = Depends(get_blog_post_repository),
    uploader: MediaUploader = Depends(get_uploader),
    notifier: EmailNotifier = Depends(get_notifier),
):
    """Publish a post with its cover image"""
    read_time = {"value": read_time_value, "unit": read_time_unit}
    payload = parse_payload(BlogPostCreate, {
        "title": title or "",
        "content": content or "",
        "category": category or None,
        "readTime": {k: v for k, v in read_time.items() if v is not None},
        "author": {
            "name": author_name or f"{claims.firstName} {claims.lastName}".strip(),
            "avatarUrl": author_avatar or claims.avatarUrl,
        },
        "authorEmail": author_email or claims.email,
    })
    if cover is None:
        raise ValidationError(["Cover image is required"])

    cover_url = await uploader.store(cover, REMOTE, field_name="cover", folder=BLOG_IMAGE_FOLDER)
    document = BlogPost(**payload.model_dump(exclude={"cover", "authorEmail"}), cover=cover_url)
    post = await posts.insert_blog_post(document)

    background_tasks.add_task(
        notifier.send,
        payload.authorEmail,
        POST_PUBLISHED,
        {"name": post.author.name, "title": post.title},
    )
    logger.info("blog_post_created", post_id=str(post.id))
    return BlogPostCreatedResponse(statusCode=status.HTTP_201_CREATED, payload=BlogPostPublic.from_document(post))


@router.patch("/updateBlogPost/{post_id}", response_model=BlogPostPublic, dependencies=[Depends(require_token)])
async def update_blog_post(post_id: str, payload: BlogPostUpdate,
                           posts: BlogPostRepository = Depends(get_blog_post_repository)):
    """Partially update a post"""
    if await posts.find_blog_post_by_id(post_id) is None:
        raise NotFound(POST_NOT_FOUND)

    updated = await posts.update_blog_post(post_id, payload.model_dump(exclude_none=True))
    if updated is None:
        raise NotFound(POST_NOT_FOUND)
    logger.info("blog_post_updated", post_id=post_id)
    return BlogPostPublic.from_document(updated)


@router.patch("/updateBlogPost/{post_id}/cover", response_model=BlogPostPublic)
async def update_blog_post_cover(
    post_id: str,
    cover: UploadFile = File(...),
    posts: BlogPostRepository = Depends(get_blog_post_repository),
    uploader: MediaUploader = Depends(get_uploader),
):
    """Replace a post's cover image"""
    if await posts.find_blog_post_by_id(post_id) is None:
        raise NotFound(POST_NOT_FOUND)

    cover_url = await uploader.store(cover, REMOTE, field_name="cover", folder=BLOG_IMAGE_FOLDER)
    updated = await posts.update_blog_post(post_id, {"cover": cover_url})
    if updated is None:
        raise NotFound(POST_NOT_FOUND)
    return BlogPostPublic.from_document(updated)


@router.delete("/deleteBlogPost/{post_id}", response_model=MessageResponse, dependencies=[Depends(require_token)])
async def delete_blog_post(post_id: str, posts: BlogPostRepository = Depends(get_blog_post_repository)):
    """Delete post by ID"""
    if not await posts.delete_blog_post(post_id):
        raise NotFound(POST_NOT_FOUND)
    logger.info("blog_post_deleted", post_id=post_id)
    return MessageResponse(statusCode=200, message=f"Post with id {post_id} successfully deleted")

#==============================================================================
# IMAGE UPLOADS
#==============================================================================

@router.post("/blogPosts/uploadImg", response_model=UploadResponse)
async def upload_image_local(request: Request, upload_img: UploadFile = File(..., alias="uploadImg"),
                             uploader: MediaUploader = Depends(get_uploader)):
    """Store an image on local disk"""
    url = await uploader.store(upload_img, LOCAL, field_name="uploadImg", base_url=str(request.base_url))
    return UploadResponse(source=url)


@router.post("/blogPosts/cloudUploadImg", response_model=UploadResponse)
async def upload_image_remote(upload_img: UploadFile = File(..., alias="uploadImg"),
                              uploader: MediaUploader = Depends(get_uploader)):
    """Store an image on Cloudinary"""
    url = await uploader.store(upload_img, REMOTE, field_name="uploadImg", folder=BLOG_IMAGE_FOLDER)
    return UploadResponse(source=url)
