"""Purchase order domain schemas - Pydantic models for validation"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, field_validator


class PurchaseOrderStatus(str, Enum):
    AANGEKOCHT = "aangekocht"
    ONTVANGEN = "ontvangen"
    VERWERKT = "verwerkt"


STATUS_FLOW = [PurchaseOrderStatus.AANGEKOCHT, PurchaseOrderStatus.ONTVANGEN, PurchaseOrderStatus.VERWERKT]

STATUS_LABELS = {
    PurchaseOrderStatus.AANGEKOCHT: "Aangekocht",
    PurchaseOrderStatus.ONTVANGEN: "Ontvangen",
    PurchaseOrderStatus.VERWERKT: "Verwerkt",
}


class LineItem(BaseModel):
    """Order line as entered in the form; unitPrice is in euros"""

    sku: Optional[str] = None
    productName: str
    quantity: int = 1
    unitPrice: float = 0

    @field_validator("quantity")
    @classmethod
    def validate_quantity(cls, v):
        if v < 0:
            raise ValueError("Quantity cannot be negative")
        return v


class PurchaseOrderForm(BaseModel):
    """Schema for creating a purchase order"""

    title: str
    supplierId: Optional[str] = None
    supplierNumber: Optional[str] = None
    orderDate: Optional[datetime] = None
    expectedDeliveryDate: Optional[datetime] = None
    # Euros; only used when there are no line items to total
    totalAmount: float = 0
    currency: str = "EUR"
    isPaid: bool = False
    notes: Optional[str] = None
    lineItems: list[LineItem] = []


class PurchaseOrderStatusUpdate(BaseModel):
    status: PurchaseOrderStatus


class SupplierCreate(BaseModel):
    supplierCode: str
    name: str

    @field_validator("supplierCode", "name")
    @classmethod
    def validate_required(cls, v):
        if not v or not v.strip():
            raise ValueError("Supplier code and name are required")
        return v.strip()


class PurchaseOrderDetail(BaseModel):
    """Purchase order with everything its detail view shows"""

    purchaseOrder: dict
    supplierName: Optional[str] = None
    statusLabel: str
    nextStatus: Optional[PurchaseOrderStatus] = None
    items: list[dict] = []
    files: list[dict] = []
    activities: list[dict] = []
    notes: list[dict] = []
    totalItems: int = 0
    totalAmount: float = 0
