from sqlalchemy import BigInteger, CheckConstraint, Column, DateTime, ForeignKey, String

from donation_portal.models.base import Base, new_id, utcnow


class Report(Base):
    """Published transparency report snapshot for a program"""
    __tablename__ = "reports"
    __table_args__ = (
        CheckConstraint("funds_utilized <= funds_received", name="ck_reports_utilized_within_received"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    program_id = Column(String(36), ForeignKey("programs.id"), nullable=False, index=True)
    funds_received = Column(BigInteger, nullable=False, default=0)
    funds_utilized = Column(BigInteger, nullable=False, default=0)
    report_file_url = Column(String(500), nullable=True)
    last_updated = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    @property
    def utilization_rate(self) -> float:
        if not self.funds_received:
            return 0.0
        return round(self.funds_utilized / self.funds_received * 100, 2)
