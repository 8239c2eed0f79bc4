from datetime import datetime
from typing import List, Optional

from pydantic import Field

from donation_portal.models import BlogCategory
from donation_portal.schemas.common import APIModel


class CreateBlogPostRequest(APIModel):
    title: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=1)
    excerpt: Optional[str] = Field(None, max_length=500)
    author: str = Field("Admin", max_length=100)
    category: BlogCategory = BlogCategory.BLOG
    image_url: Optional[str] = Field(None, max_length=500)
    published: bool = True


class UpdateBlogPostRequest(APIModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    content: Optional[str] = Field(None, min_length=1)
    excerpt: Optional[str] = Field(None, max_length=500)
    author: Optional[str] = Field(None, max_length=100)
    category: Optional[BlogCategory] = None
    image_url: Optional[str] = Field(None, max_length=500)
    published: Optional[bool] = None


class BlogPostResponse(APIModel):
    id: str
    title: str
    content: str
    excerpt: Optional[str]
    author: str
    category: BlogCategory
    image_url: Optional[str]
    published: bool
    created_at: datetime
    updated_at: datetime


class BlogPostListResponse(APIModel):
    posts: List[BlogPostResponse]
    total: int
