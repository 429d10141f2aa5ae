from sqlalchemy import Column, String, DateTime, JSON
from sqlalchemy.sql import func
from showroom.core.database import Base

class SiteContent(Base):
    __tablename__ = "site_content"

    key = Column(String(64), primary_key=True) # e.g. "paymentSettings"
    data = Column(JSON, default=dict)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())
