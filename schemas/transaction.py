from enum import Enum
from typing import Any, List, Optional
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class PaymentStatus(str, Enum):
    UNPAID = "UNPAID"
    PAID = "PAID"
    EXPIRED = "EXPIRED"
    FAILED = "FAILED"


class OrderItem(BaseModel):
    name: str
    price: int
    quantity: int

    model_config = ConfigDict(extra="allow")


class CreateTransactionRequest(BaseModel):
    # Presence is checked by the route so missing fields map to a 400, not a 422
    method: Optional[str] = None
    amount: Optional[int] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    group_id: Optional[str] = None
    order_items: Optional[List[OrderItem]] = None
    return_url: Optional[str] = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def missing_required(self) -> bool:
        return not (self.method and self.amount and self.customer_phone and self.order_items is not None)


class TransactionRecord(BaseModel):
    """Entry of the cookie-backed payment history"""
    reference: str
    merchant_ref: str
    method: str
    amount: int
    status: str
    created_at: str
    updated_at: Optional[str] = None
    order_items: Any = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")


class HistoryLookupRequest(BaseModel):
    identifier: Optional[str] = None
    type: str = "user"  # 'user' | 'group'
    page: int = 1


class CartUpdate(BaseModel):
    items: Any = None
