from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from db.base import Base

class PaymentRecord(Base):
    """A created transaction. Written once; status lives in PaymentEvent"""
    __tablename__ = "payment_history"

    id = Column(Integer, primary_key=True, index=True)
    reference = Column(String(255), unique=True, nullable=False, index=True)  # Tripay reference
    merchant_ref = Column(String(255), unique=True, nullable=False, index=True)
    phone_number = Column(String(50), nullable=True, index=True)
    group_id = Column(String(255), nullable=True, index=True)
    customer_name = Column(String(255), nullable=True)
    method = Column(String(50), nullable=False)  # channel code, e.g. 'QRIS'
    amount = Column(Integer, nullable=False)
    order_items = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    events = relationship(
        "PaymentEvent",
        back_populates="record",
        order_by="PaymentEvent.id",
        lazy="selectin",
    )

class PaymentEvent(Base):
    """Append-only status log keyed by merchant reference"""
    __tablename__ = "payment_events"

    id = Column(Integer, primary_key=True, index=True)
    merchant_ref = Column(String(255), ForeignKey("payment_history.merchant_ref"), nullable=False, index=True)
    status = Column(String(50), nullable=False)  # 'UNPAID', 'PAID', 'EXPIRED', 'FAILED'
    source = Column(String(50), nullable=False)  # 'create', 'status_check', 'callback'
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    record = relationship("PaymentRecord", back_populates="events")
