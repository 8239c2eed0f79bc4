from datetime import datetime, timezone
import enum
import uuid

from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


def enum_column_type(enum_cls, name: str) -> SQLEnum:
    """Store enum values (not member names) so raw SQL and API payloads agree"""
    return SQLEnum(
        enum_cls,
        name=name,
        values_callable=lambda members: [member.value for member in members],
        validate_strings=True,
    )


class UserRole(str, enum.Enum):
    DONOR = "donor"
    ADMIN = "admin"


class ProgramStatus(str, enum.Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class TransactionStatus(str, enum.Enum):
    """Donation lifecycle: pending -> completed | failed, never reversed"""
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class VisibilityChoice(str, enum.Enum):
    PUBLIC = "public"
    ANONYMOUS = "anonymous"


class CertificateType(str, enum.Enum):
    SECTION_80G = "80G"
    SECTION_12A = "12A"


class NotificationStatus(str, enum.Enum):
    """Email delivery status"""
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class BlogCategory(str, enum.Enum):
    BLOG = "blog"
    PRESS = "press"


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes (as some drivers return them) as UTC"""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
