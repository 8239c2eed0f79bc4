"""
Email delivery log
"""
from sqlalchemy import Column, DateTime, String, Text

from donation_portal.models.base import Base, NotificationStatus, enum_column_type, new_id, utcnow


class Notification(Base):
    """One outbound email attempt"""
    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), index=True, nullable=True)
    recipient = Column(String(255), nullable=False)

    # e.g. "donation_confirmation", "progress_report"
    notification_type = Column(String(50), nullable=False, index=True)
    status = Column(
        enum_column_type(NotificationStatus, "notification_status"),
        default=NotificationStatus.PENDING,
        nullable=False,
    )
    provider = Column(String(20), nullable=True)

    # Content
    subject = Column(String(255), nullable=False)
    body = Column(Text, nullable=False)

    error_message = Column(Text, nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    sent_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<Notification(id={self.id}, type={self.notification_type}, status={self.status})>"
