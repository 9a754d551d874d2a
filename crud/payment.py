from sqlalchemy import or_
from sqlalchemy.orm import Session
from typing import Any, Dict, List, Optional, Tuple
import logging

from models.payment import PaymentRecord, PaymentEvent
from schemas.transaction import PaymentStatus

logger = logging.getLogger(__name__)

def get_record(db: Session, reference: str) -> Optional[PaymentRecord]:
    """Get a record by Tripay reference or merchant reference"""
    return db.query(PaymentRecord).filter(
        or_(PaymentRecord.reference == reference, PaymentRecord.merchant_ref == reference)
    ).first()

def current_status(record: PaymentRecord) -> Optional[str]:
    return record.events[-1].status if record.events else None

def record_transaction(
    db: Session,
    *,
    reference: str,
    merchant_ref: str,
    method: str,
    amount: int,
    phone_number: Optional[str] = None,
    group_id: Optional[str] = None,
    customer_name: Optional[str] = None,
    order_items: Any = None,
) -> PaymentRecord:
    """Store a newly created transaction with its initial UNPAID event"""
    try:
        record = PaymentRecord(
            reference=reference,
            merchant_ref=merchant_ref,
            method=method,
            amount=amount,
            phone_number=phone_number,
            group_id=group_id,
            customer_name=customer_name,
            order_items=order_items,
        )
        db.add(record)
        db.add(PaymentEvent(merchant_ref=merchant_ref, status=PaymentStatus.UNPAID.value, source="create"))
        db.commit()
        db.refresh(record)

        logger.info(f"Recorded transaction {merchant_ref} ({reference})")
        return record

    except Exception as e:
        logger.error(f"Error recording transaction: {e}")
        db.rollback()
        raise e

def append_status(db: Session, reference: str, status: str, source: str) -> Optional[PaymentEvent]:
    """Append a status event for a known transaction.

    Unknown references are ignored (returns None) and a status equal to the
    current one is not repeated.
    """
    try:
        record = get_record(db, reference)
        if not record:
            return None
        if current_status(record) == status:
            return None

        event = PaymentEvent(merchant_ref=record.merchant_ref, status=status, source=source)
        db.add(event)
        db.commit()
        db.refresh(event)

        logger.info(f"Transaction {record.merchant_ref} -> {status} ({source})")
        return event

    except Exception as e:
        logger.error(f"Error appending status for {reference}: {e}")
        db.rollback()
        raise e

def get_history(
    db: Session,
    identifier: str,
    kind: str = "user",
    page: int = 1,
    per_page: int = 10,
) -> Tuple[List[PaymentRecord], int]:
    """Page through a customer's (phone) or group's transactions, newest first"""
    column = PaymentRecord.group_id if kind == "group" else PaymentRecord.phone_number
    query = db.query(PaymentRecord).filter(column == identifier)
    total = query.count()
    records = (
        query.order_by(PaymentRecord.created_at.desc(), PaymentRecord.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )
    return records, total

def _iso(value) -> Optional[str]:
    return value.isoformat() if value else None

def serialize_record(record: PaymentRecord) -> Dict[str, Any]:
    events = record.events
    paid = next((e for e in events if e.status == PaymentStatus.PAID.value), None)
    data = {
        "reference": record.reference,
        "merchantRef": record.merchant_ref,
        "customerName": record.customer_name,
        "method": record.method,
        "amount": record.amount,
        "status": current_status(record),
        "orderItems": record.order_items,
        "createdAt": _iso(record.created_at),
    }
    if len(events) > 1:
        data["updatedAt"] = _iso(events[-1].created_at)
    if paid:
        data["paidAt"] = _iso(paid.created_at)
    return data
