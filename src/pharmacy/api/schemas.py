"""Pydantic request/response schemas for the pharmacy API.

These are external contracts — separate from internal Protean commands.
"""

from typing import Literal

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class AddressSchema(BaseModel):
    address_line1: str
    city: str
    state: str | None = None
    postal_code: str | None = None
    country: str = "Nepal"


class StatusResponse(BaseModel):
    status: str = "ok"


# ---------------------------------------------------------------------------
# Products
# ---------------------------------------------------------------------------
class RegisterProductRequest(BaseModel):
    name: str
    brand: str | None = None
    category: str | None = None
    price: float = Field(ge=0)
    unit_price: float | None = Field(default=None, ge=0)
    stock: int = Field(ge=0, default=0)
    units_per_base_package: int = Field(ge=1, default=1)
    allows_unit_sale: bool = False
    min_order_quantity: int = Field(ge=1, default=1)
    max_order_quantity: int | None = Field(default=None, ge=1)
    requires_prescription: bool = False
    low_stock_threshold: int = Field(ge=0, default=5)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "name": "Paracetamol 500mg",
                    "brand": "Nepal Pharmaceuticals",
                    "category": "Pain Relief",
                    "price": 30.0,
                    "stock": 120,
                    "units_per_base_package": 10,
                    "allows_unit_sale": True,
                }
            ]
        }
    }


class ProductIdResponse(BaseModel):
    product_id: str


class StockLevelResponse(BaseModel):
    product_id: str
    name: str
    stock: int
    reserved_stock: int
    available_stock: int
    status: str


# ---------------------------------------------------------------------------
# Carts
# ---------------------------------------------------------------------------
class OpenCartRequest(BaseModel):
    customer_id: str | None = None
    session_id: str | None = None


class AddToCartRequest(BaseModel):
    product_id: str
    quantity: int = Field(default=1)
    purchase_type: Literal["unit", "package"] = "package"


class UpdateCartItemRequest(BaseModel):
    purchase_type: Literal["unit", "package"] = "package"
    new_quantity: int = Field(ge=0)


class CartItemResponse(BaseModel):
    product_id: str
    purchase_type: str
    quantity: int
    unit_price: float
    line_total: float
    reserved_base_units: int


class CartResponse(BaseModel):
    cart_id: str
    customer_id: str | None = None
    session_id: str | None = None
    status: str
    items: list[CartItemResponse]
    subtotal: float
    total_items: int
    expires_at: str | None = None


class CheckoutRequest(BaseModel):
    delivery_address: AddressSchema
    payment_method: Literal["cash_on_delivery", "online_transfer"] = "cash_on_delivery"
    customer_name: str | None = None
    contact_phone: str | None = None
    contact_email: str | None = None
    prescriptions: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------
class OrderIdResponse(BaseModel):
    order_id: str


class TransitionRequest(BaseModel):
    status: str
    actor: str | None = None
    notes: str | None = None


class VerifyPrescriptionRequest(BaseModel):
    approved: bool
    notes: str | None = None
    actor: str | None = None


class RecordPaymentRequest(BaseModel):
    amount: float = Field(ge=0)


class RefundRequest(BaseModel):
    actor: str | None = None


class OrderStatusResponse(BaseModel):
    order_id: str
    status: str


# ---------------------------------------------------------------------------
# Tracking
# ---------------------------------------------------------------------------
class TrackingHistoryEntry(BaseModel):
    status: str
    changed_at: str
    notes: str | None = None


class TrackingResponse(BaseModel):
    order_number: str
    status: str
    total: float
    items: list[dict]
    delivery_address: dict
    history: list[TrackingHistoryEntry]


# ---------------------------------------------------------------------------
# Maintenance
# ---------------------------------------------------------------------------
class CountResponse(BaseModel):
    count: int


class LowStockItem(BaseModel):
    product_id: str
    name: str
    available_stock: int
    threshold: int


class PruneHistoryRequest(BaseModel):
    keep: int = Field(ge=1, default=50)
