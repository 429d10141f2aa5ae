from sqlalchemy import Column, Integer, String, Text, DateTime, Numeric, JSON
from sqlalchemy.sql import func
from showroom.core.database import Base

VEHICLE_TYPES = ("Sedan", "SUV", "Hatchback", "Commercial", "Special")

class Vehicle(Base):
    __tablename__ = "vehicles"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, index=True)
    type = Column(String(16), nullable=False) # Sedan | SUV | Hatchback | Commercial | Special
    price = Column(Numeric(18, 2), nullable=False)
    description = Column(Text, default="")
    image_url = Column(String, nullable=True)
    specs = Column(JSON, default=list) # [{"icon": ..., "name": ..., "value": ...}]
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())
