from sqlalchemy import Column, DateTime, String

from donation_portal.models.base import Base, UserRole, enum_column_type, new_id, utcnow


class User(Base):
    """Account holder: a donor or a foundation administrator"""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False, unique=True, index=True)
    phone = Column(String(20), nullable=False)
    password_hash = Column(String(255), nullable=False)
    role = Column(enum_column_type(UserRole, "user_role"), nullable=False, default=UserRole.DONOR)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self):
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"
