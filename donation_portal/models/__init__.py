from donation_portal.models.base import (
    Base,
    BlogCategory,
    CertificateType,
    NotificationStatus,
    ProgramStatus,
    TransactionStatus,
    UserRole,
    VisibilityChoice,
)
from donation_portal.models.blog import BlogPost
from donation_portal.models.certificate import Certificate
from donation_portal.models.donation import Donation
from donation_portal.models.notification import Notification
from donation_portal.models.program import Program
from donation_portal.models.report import Report
from donation_portal.models.user import User

__all__ = [
    "Base",
    "BlogCategory",
    "BlogPost",
    "Certificate",
    "CertificateType",
    "Donation",
    "Notification",
    "NotificationStatus",
    "Program",
    "ProgramStatus",
    "Report",
    "TransactionStatus",
    "User",
    "UserRole",
    "VisibilityChoice",
]
