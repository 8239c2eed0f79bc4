from sqlalchemy import BigInteger, CheckConstraint, Column, DateTime, ForeignKey, String

from donation_portal.models.base import (
    Base,
    TransactionStatus,
    VisibilityChoice,
    enum_column_type,
    new_id,
    utcnow,
)


class Donation(Base):
    """One contribution attempt, keyed by the gateway order id"""
    __tablename__ = "donations"
    __table_args__ = (
        CheckConstraint("amount >= 1", name="ck_donations_amount_positive"),
        CheckConstraint(
            "(visibility_choice = 'public' AND public_name IS NOT NULL AND donor_alias IS NULL) OR "
            "(visibility_choice = 'anonymous' AND donor_alias IS NOT NULL AND public_name IS NULL)",
            name="ck_donations_visibility_display",
        ),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    program_id = Column(String(36), ForeignKey("programs.id"), nullable=False, index=True)
    amount = Column(BigInteger, nullable=False)  # major currency unit (INR)
    razorpay_order_id = Column(String(100), nullable=False, index=True)
    razorpay_payment_id = Column(String(100), nullable=True, unique=True)
    transaction_status = Column(
        enum_column_type(TransactionStatus, "transaction_status"),
        nullable=False,
        default=TransactionStatus.PENDING,
        index=True,
    )
    visibility_choice = Column(enum_column_type(VisibilityChoice, "visibility_choice"), nullable=False)
    public_name = Column(String(100), nullable=True)
    donor_alias = Column(String(50), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    @property
    def display_name(self) -> str:
        if self.visibility_choice == VisibilityChoice.PUBLIC:
            return self.public_name
        return self.donor_alias

    def __repr__(self):
        return (
            f"<Donation(id={self.id}, order_id={self.razorpay_order_id}, "
            f"amount={self.amount}, status='{self.transaction_status}')>"
        )
