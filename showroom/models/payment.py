from sqlalchemy import Column, Integer, String, DateTime, Numeric, ForeignKey
from sqlalchemy.orm import declared_attr
from sqlalchemy.sql import func
from showroom.core.database import Base
from showroom.models.user import new_id

class PaymentTransactionMixin:
    """Columns shared by every payment workflow entity (order, deposit, giveaway entry)."""

    id = Column(String(32), primary_key=True, default=new_id)
    payer_name = Column(String, nullable=False)
    payer_email = Column(String, nullable=False)
    amount = Column(Numeric(18, 2), nullable=False)

    # Stored as the variant label ("Pending", "Awaiting Receipt", "Verifying", "Paid", "Completed", ...)
    payment_status = Column(String(24), default="Pending", index=True, nullable=False)
    payment_method = Column(String(16), nullable=True) # wallet | bank | crypto
    receipt_reference = Column(String, nullable=True) # Receipt URL once uploaded

    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    @declared_attr
    def user_id(cls):
        return Column(String(32), ForeignKey("users.id"), index=True, nullable=True)

class Order(PaymentTransactionMixin, Base):
    __tablename__ = "orders"

    vehicle_id = Column(Integer, ForeignKey("vehicles.id"), nullable=False)
    vehicle_name = Column(String, nullable=False)
    fulfillment_status = Column(String(16), default="Processing") # Processing | Delivered | Cancelled
    order_date = Column(String(10)) # YYYY-MM-DD

class Deposit(PaymentTransactionMixin, Base):
    __tablename__ = "deposits"

    request_date = Column(String(10)) # YYYY-MM-DD

class GiveawayEntry(PaymentTransactionMixin, Base):
    __tablename__ = "giveaway_entries"

    phone = Column(String, nullable=True)
    country = Column(String, nullable=True)
    raffle_code = Column(String, unique=True, nullable=True) # Issued when the entry is paid
    winner_status = Column(String(4), default="No") # No | Yes

class InstallmentPlan(Base):
    __tablename__ = "installment_plans"

    id = Column(String(32), primary_key=True, default=new_id)
    user_id = Column(String(32), ForeignKey("users.id"), index=True, nullable=True)
    customer_name = Column(String, nullable=False)
    customer_email = Column(String, nullable=False)
    vehicle_id = Column(Integer, ForeignKey("vehicles.id"), nullable=True)
    vehicle_name = Column(String, nullable=False)
    total_price = Column(Numeric(18, 2), nullable=False)
    down_payment = Column(Numeric(18, 2), nullable=False)
    monthly_payment = Column(Numeric(18, 2), nullable=False)
    term_months = Column(Integer, nullable=False)
    start_date = Column(String(10))
    status = Column(String(16), default="Active") # Active | Paid Off
    created_at = Column(DateTime, default=func.now())
