from sqlalchemy import Column, Integer, String, Boolean, Enum, TIMESTAMP
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from fleetbook.database import Base
from fleetbook.models.role import RoleName


class User(Base):
    """Read-only view of the external user directory."""
    __tablename__ = "users"

    id         = Column(Integer, primary_key=True, index=True)
    name       = Column(String(150), nullable=False)
    email      = Column(String(255), unique=True, nullable=False, index=True)
    role       = Column(Enum(RoleName), nullable=False, default=RoleName.EMPLOYEE)
    department = Column(String(100), nullable=True)
    isActive   = Column(Boolean, default=True, nullable=False)
    createdAt  = Column(TIMESTAMP(timezone=True), server_default=func.now(), nullable=False)

    # ─── Relationships ─────────────────────────────────────────────────────────
    bookings   = relationship("Booking", foreign_keys="Booking.userId", back_populates="user")
    approvals  = relationship("Approval", back_populates="approver")
    audit_logs = relationship("AuditLog", back_populates="user")

    def __repr__(self):
        return f"<User id={self.id} email={self.email} role={self.role}>"
