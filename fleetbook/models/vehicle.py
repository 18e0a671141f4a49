import enum
from sqlalchemy import Column, Integer, String, Enum, TIMESTAMP
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from fleetbook.database import Base


class VehicleStatus(str, enum.Enum):
    AVAILABLE      = "AVAILABLE"
    IN_USE         = "IN_USE"
    MAINTENANCE    = "MAINTENANCE"
    OUT_OF_SERVICE = "OUT_OF_SERVICE"


class Vehicle(Base):
    __tablename__ = "vehicles"

    id          = Column(Integer, primary_key=True, index=True)
    plateNumber = Column(String(20), unique=True, nullable=False, index=True)
    status      = Column(Enum(VehicleStatus), default=VehicleStatus.AVAILABLE, nullable=False)
    createdAt   = Column(TIMESTAMP(timezone=True), server_default=func.now(), nullable=False)
    updatedAt   = Column(TIMESTAMP(timezone=True), server_default=func.now(),
                         onupdate=func.now(), nullable=False)

    # ─── Relationships ─────────────────────────────────────────────────────────
    bookings = relationship("Booking", back_populates="vehicle")

    def __repr__(self):
        return f"<Vehicle id={self.id} plate={self.plateNumber} status={self.status}>"
