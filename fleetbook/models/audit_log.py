from sqlalchemy import Column, Integer, String, Text, ForeignKey, TIMESTAMP, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from fleetbook.database import Base


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id          = Column(Integer, primary_key=True, index=True)
    userId      = Column(Integer, ForeignKey("users.id"), nullable=True)  # NULL = system action
    action      = Column(String(100), nullable=False, index=True)  # e.g. CREATE, UPDATE, CANCEL, APPROVE
    entityType  = Column(String(100), nullable=False)               # e.g. Booking, Approval, Vehicle
    entityId    = Column(Integer, nullable=True)
    oldValues   = Column(JSON, nullable=True)                       # changed fields only
    newValues   = Column(JSON, nullable=True)
    description = Column(Text, nullable=True)
    ipAddress   = Column(String(64), nullable=True)
    userAgent   = Column(String(500), nullable=True)
    createdAt   = Column(TIMESTAMP(timezone=True), server_default=func.now(), nullable=False, index=True)

    # ─── Relationships ─────────────────────────────────────────────────────────
    user = relationship("User", back_populates="audit_logs")

    def __repr__(self):
        return f"<AuditLog id={self.id} action={self.action} entity={self.entityType}:{self.entityId}>"
