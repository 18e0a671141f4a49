import enum
from sqlalchemy import Column, Integer, String, Text, ForeignKey, TIMESTAMP, Enum, CheckConstraint, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from fleetbook.database import Base


class BookingStatus(str, enum.Enum):
    PENDING     = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    APPROVED    = "APPROVED"
    REJECTED    = "REJECTED"
    CANCELLED   = "CANCELLED"
    COMPLETED   = "COMPLETED"


# Statuses that hold the vehicle for the booking window
ACTIVE_STATUSES = (BookingStatus.APPROVED, BookingStatus.IN_PROGRESS)


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        CheckConstraint('"startDate" < "endDate"', name="ck_bookings_window"),
        Index("ix_bookings_vehicle_status", "vehicleId", "status"),
    )

    id              = Column(Integer, primary_key=True, index=True)
    userId          = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    createdById     = Column(Integer, ForeignKey("users.id"), nullable=True)
    vehicleId       = Column(Integer, ForeignKey("vehicles.id"), nullable=False)
    driverId        = Column(Integer, ForeignKey("drivers.id"), nullable=True)
    startDate       = Column(TIMESTAMP(timezone=True), nullable=False)
    endDate         = Column(TIMESTAMP(timezone=True), nullable=False)
    status          = Column(Enum(BookingStatus), default=BookingStatus.PENDING, nullable=False, index=True)
    department      = Column(String(100), nullable=True)
    notes           = Column(Text, nullable=True)
    rejectionReason = Column(Text, nullable=True)
    createdAt       = Column(TIMESTAMP(timezone=True), server_default=func.now(), nullable=False)
    updatedAt       = Column(TIMESTAMP(timezone=True), server_default=func.now(),
                             onupdate=func.now(), nullable=False)

    # ─── Relationships ─────────────────────────────────────────────────────────
    user       = relationship("User", foreign_keys=[userId], back_populates="bookings")
    created_by = relationship("User", foreign_keys=[createdById])
    vehicle    = relationship("Vehicle", back_populates="bookings")
    driver     = relationship("Driver", back_populates="bookings")
    approvals  = relationship("Approval", back_populates="booking", order_by="Approval.level")

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    def __repr__(self):
        return f"<Booking id={self.id} status={self.status} vehicleId={self.vehicleId}>"
