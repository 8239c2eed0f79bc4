from sqlalchemy import BigInteger, CheckConstraint, Column, DateTime, String, Text

from donation_portal.models.base import Base, ProgramStatus, enum_column_type, new_id, utcnow


class Program(Base):
    """Fundraising initiative; funds_received/funds_utilized form the fund ledger"""
    __tablename__ = "programs"
    __table_args__ = (
        CheckConstraint("target_amount >= 0", name="ck_programs_target_non_negative"),
        CheckConstraint("funds_received >= 0", name="ck_programs_received_non_negative"),
        CheckConstraint("funds_utilized >= 0", name="ck_programs_utilized_non_negative"),
        CheckConstraint("funds_utilized <= funds_received", name="ck_programs_utilized_within_received"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    program_name = Column(String(200), nullable=False, unique=True, index=True)
    description = Column(Text, nullable=False)
    target_amount = Column(BigInteger, nullable=False, default=0)
    funds_received = Column(BigInteger, nullable=False, default=0)
    funds_utilized = Column(BigInteger, nullable=False, default=0)
    start_date = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    end_date = Column(DateTime(timezone=True), nullable=True)
    status = Column(
        enum_column_type(ProgramStatus, "program_status"),
        nullable=False,
        default=ProgramStatus.ACTIVE,
        index=True,
    )
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    @property
    def utilization_rate(self) -> float:
        """Percentage of received funds already spent, 0 when nothing was received"""
        if not self.funds_received:
            return 0.0
        return round(self.funds_utilized / self.funds_received * 100, 2)

    def __repr__(self):
        return f"<Program(id={self.id}, name={self.program_name}, status={self.status})>"
