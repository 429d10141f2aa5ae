from sqlalchemy import Column, Integer, String, DateTime, Text
from sqlalchemy.sql import func
from showroom.core.database import Base

class EmailLog(Base):
    __tablename__ = "email_logs"

    id = Column(Integer, primary_key=True, index=True)
    email_type = Column(String(48), nullable=False, index=True) # Template id
    recipient = Column(String, nullable=False)
    subject = Column(String, nullable=False)
    body = Column(Text, nullable=False)
    status = Column(String(8), nullable=False) # sent | failed | skipped
    error = Column(String, nullable=True)
    sent_at = Column(DateTime, default=func.now())
