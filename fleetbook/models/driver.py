import enum
from sqlalchemy import Column, Integer, String, Enum
from sqlalchemy.orm import relationship
from fleetbook.database import Base


class DriverStatus(str, enum.Enum):
    AVAILABLE = "AVAILABLE"
    BUSY      = "BUSY"
    OFF_DUTY  = "OFF_DUTY"


class Driver(Base):
    __tablename__ = "drivers"

    id            = Column(Integer, primary_key=True, index=True)
    name          = Column(String(150), nullable=False)
    licenseNumber = Column(String(100), nullable=False)
    status        = Column(Enum(DriverStatus), default=DriverStatus.AVAILABLE, nullable=False)

    # ─── Relationships ─────────────────────────────────────────────────────────
    bookings = relationship("Booking", back_populates="driver")

    def __repr__(self):
        return f"<Driver id={self.id} status={self.status}>"
