from sqlalchemy import Column, Integer, String, DateTime, Text
from sqlalchemy.sql import func
from showroom.core.database import Base

class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(32), index=True, nullable=True) # Acting user, None for guests
    username = Column(String, nullable=True)
    action = Column(String, nullable=False, index=True) # e.g. "order:choose_wallet", "deposit:confirm"
    target = Column(String, nullable=True) # e.g. "order:3f2a...", "vehicle:4"
    details = Column(Text, nullable=True) # JSON
    ip_address = Column(String, nullable=True)
    created_at = Column(DateTime, default=func.now())
