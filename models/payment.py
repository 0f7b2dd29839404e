from decimal import Decimal

from pydantic import BaseModel

from enums.order_status import OrderStatus
from models.order import OrderDTO


class PaymentReferenceDTO(BaseModel):
    """Scan-to-pay payload bound to one payee and one amount."""
    payload: str
    qr_image: str  # data:image/png;base64,...
    payee: str
    amount: Decimal


class PaymentDTO(BaseModel):
    orders: list[OrderDTO]
    bundle_id: str | None = None
    total: Decimal
    currency: str
    payload: str
    qr_image: str
    instructions: list[str]
    is_existing: bool = False


class PaymentStatusDTO(BaseModel):
    order_ids: list[int]
    bundle_id: str | None = None
    status: OrderStatus
    total: Decimal
    is_paid: bool
