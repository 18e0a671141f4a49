import enum
from sqlalchemy import (
    Column, Integer, Text, ForeignKey, TIMESTAMP, Enum, UniqueConstraint, CheckConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from fleetbook.database import Base

APPROVAL_LEVELS = (1, 2)


class ApprovalStatus(str, enum.Enum):
    PENDING   = "PENDING"
    APPROVED  = "APPROVED"
    REJECTED  = "REJECTED"
    CANCELLED = "CANCELLED"


class Approval(Base):
    __tablename__ = "approvals"
    __table_args__ = (
        UniqueConstraint("bookingId", "level", name="uq_approvals_booking_level"),
        CheckConstraint("level IN (1, 2)", name="ck_approvals_level"),
    )

    id         = Column(Integer, primary_key=True, index=True)
    bookingId  = Column(Integer, ForeignKey("bookings.id"), nullable=False, index=True)
    approverId = Column(Integer, ForeignKey("users.id"), nullable=True)   # NULL = not yet assigned
    level      = Column(Integer, nullable=False)
    status     = Column(Enum(ApprovalStatus), default=ApprovalStatus.PENDING, nullable=False, index=True)
    comments   = Column(Text, nullable=True)
    approvedAt = Column(TIMESTAMP(timezone=True), nullable=True)
    createdAt  = Column(TIMESTAMP(timezone=True), server_default=func.now(), nullable=False)
    updatedAt  = Column(TIMESTAMP(timezone=True), server_default=func.now(),
                        onupdate=func.now(), nullable=False)

    # ─── Relationships ─────────────────────────────────────────────────────────
    booking  = relationship("Booking", back_populates="approvals")
    approver = relationship("User", back_populates="approvals")

    def __repr__(self):
        return f"<Approval id={self.id} bookingId={self.bookingId} level={self.level} status={self.status}>"
