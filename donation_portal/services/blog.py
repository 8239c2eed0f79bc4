from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from donation_portal.core.errors import NotFoundError
from donation_portal.models import BlogCategory, BlogPost
from donation_portal.schemas.blog import CreateBlogPostRequest, UpdateBlogPostRequest

logger = structlog.get_logger(__name__)


class BlogService:
    """Blog posts and press releases"""

    @staticmethod
    async def list_posts(
        db: AsyncSession,
        category: Optional[BlogCategory] = None,
        include_unpublished: bool = False,
    ) -> List[BlogPost]:
        query = select(BlogPost)
        if not include_unpublished:
            query = query.where(BlogPost.published.is_(True))
        if category:
            query = query.where(BlogPost.category == category)
        result = await db.execute(query.order_by(BlogPost.created_at.desc()))
        return list(result.scalars().all())

    @staticmethod
    async def get_post(db: AsyncSession, post_id: str, include_unpublished: bool = False) -> BlogPost:
        post = await db.get(BlogPost, post_id)
        if not post or (not post.published and not include_unpublished):
            raise NotFoundError("Blog post")
        return post

    @staticmethod
    async def create_post(db: AsyncSession, data: CreateBlogPostRequest) -> BlogPost:
        post = BlogPost(**data.model_dump())
        db.add(post)
        await db.commit()
        await db.refresh(post)

        logger.info("Blog post created", post_id=post.id, category=post.category.value)
        return post

    @staticmethod
    async def update_post(db: AsyncSession, post_id: str, data: UpdateBlogPostRequest) -> BlogPost:
        post = await BlogService.get_post(db, post_id, include_unpublished=True)
        for field, value in data.model_dump(exclude_unset=True).items():
            if value is not None:
                setattr(post, field, value)
        await db.commit()
        await db.refresh(post)

        logger.info("Blog post updated", post_id=post_id)
        return post

    @staticmethod
    async def delete_post(db: AsyncSession, post_id: str):
        post = await BlogService.get_post(db, post_id, include_unpublished=True)
        await db.delete(post)
        await db.commit()
        logger.info("Blog post deleted", post_id=post_id)
