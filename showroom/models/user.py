from sqlalchemy import Column, String, Boolean, DateTime, Numeric, ForeignKey
from sqlalchemy.sql import func
from showroom.core.database import Base
import uuid

def new_id() -> str:
    return uuid.uuid4().hex

class User(Base):
    __tablename__ = "users"

    id = Column(String(32), primary_key=True, default=new_id)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=True)
    balance = Column(Numeric(18, 2), default=0, nullable=False) # Wallet balance (CNY), never negative
    is_admin = Column(Boolean, default=False)
    created_at = Column(DateTime, default=func.now())

class Investment(Base):
    __tablename__ = "investments"

    id = Column(String(32), primary_key=True, default=new_id)
    user_id = Column(String(32), ForeignKey("users.id"), index=True, nullable=False)
    amount = Column(Numeric(18, 2), nullable=False)
    description = Column(String, nullable=True)
    date = Column(String(10)) # YYYY-MM-DD
    created_at = Column(DateTime, default=func.now())
