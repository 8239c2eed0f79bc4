from sqlalchemy import Boolean, Column, DateTime, String, Text

from donation_portal.models.base import Base, BlogCategory, enum_column_type, new_id, utcnow


class BlogPost(Base):
    """Blog article or press release"""
    __tablename__ = "blog_posts"

    id = Column(String(36), primary_key=True, default=new_id)
    title = Column(String(200), nullable=False)
    content = Column(Text, nullable=False)
    excerpt = Column(String(500), nullable=True)
    author = Column(String(100), nullable=False, default="Admin")
    category = Column(enum_column_type(BlogCategory, "blog_category"), nullable=False, default=BlogCategory.BLOG)
    image_url = Column(String(500), nullable=True)
    published = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
