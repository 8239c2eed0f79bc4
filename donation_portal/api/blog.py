from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from donation_portal.api.deps import ensure_valid_id
from donation_portal.core.security import require_admin
from donation_portal.database.database import get_db
from donation_portal.models import BlogCategory
from donation_portal.schemas.blog import (
    BlogPostListResponse,
    BlogPostResponse,
    CreateBlogPostRequest,
    UpdateBlogPostRequest,
)
from donation_portal.schemas.common import MessageResponse
from donation_portal.services.blog import BlogService

router = APIRouter(prefix="/api/blog", tags=["blog"])


@router.get("", response_model=BlogPostListResponse)
async def list_posts(
    category: Optional[BlogCategory] = Query(None, description="blog or press"),
    db: AsyncSession = Depends(get_db),
):
    """Published posts, newest first"""
    posts = await BlogService.list_posts(db, category=category)
    return BlogPostListResponse(
        posts=[BlogPostResponse.model_validate(post) for post in posts],
        total=len(posts),
    )


@router.get("/{post_id}", response_model=BlogPostResponse)
async def get_post(post_id: str, db: AsyncSession = Depends(get_db)):
    post = await BlogService.get_post(db, ensure_valid_id(post_id))
    return BlogPostResponse.model_validate(post)


@router.post("", response_model=BlogPostResponse, status_code=201, dependencies=[Depends(require_admin)])
async def create_post(data: CreateBlogPostRequest, db: AsyncSession = Depends(get_db)):
    post = await BlogService.create_post(db, data)
    return BlogPostResponse.model_validate(post)


@router.put("/{post_id}", response_model=BlogPostResponse, dependencies=[Depends(require_admin)])
async def update_post(post_id: str, data: UpdateBlogPostRequest, db: AsyncSession = Depends(get_db)):
    post = await BlogService.update_post(db, ensure_valid_id(post_id), data)
    return BlogPostResponse.model_validate(post)


@router.delete("/{post_id}", response_model=MessageResponse, dependencies=[Depends(require_admin)])
async def delete_post(post_id: str, db: AsyncSession = Depends(get_db)):
    await BlogService.delete_post(db, ensure_valid_id(post_id))
    return MessageResponse(message="Blog post deleted")
