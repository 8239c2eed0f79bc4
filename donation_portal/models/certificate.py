from sqlalchemy import Column, DateTime, ForeignKey, String, UniqueConstraint

from donation_portal.models.base import Base, CertificateType, enum_column_type, new_id, utcnow


class Certificate(Base):
    """Generated tax document; at most one per donation and type, never mutated"""
    __tablename__ = "certificates"
    __table_args__ = (
        UniqueConstraint("donation_id", "certificate_type", name="uq_certificates_donation_type"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    donation_id = Column(String(36), ForeignKey("donations.id"), nullable=False, index=True)
    certificate_type = Column(enum_column_type(CertificateType, "certificate_type"), nullable=False)
    certificate_url = Column(String(500), nullable=False)
    issued_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    def __repr__(self):
        return f"<Certificate(donation_id={self.donation_id}, type={self.certificate_type})>"
