"""FastAPI routes for the pharmacy domain.

The routers translate HTTP requests into commands and queries. All rules live
in the domain; errors surface through Protean's exception handlers.
"""

import json

from fastapi import APIRouter
from protean.utils.globals import current_domain

from pharmacy.api.schemas import (
    AddToCartRequest,
    CartItemResponse,
    CartResponse,
    CheckoutRequest,
    CountResponse,
    LowStockItem,
    OpenCartRequest,
    OrderIdResponse,
    OrderStatusResponse,
    ProductIdResponse,
    PruneHistoryRequest,
    RecordPaymentRequest,
    RefundRequest,
    RegisterProductRequest,
    StatusResponse,
    StockLevelResponse,
    TrackingResponse,
    TransitionRequest,
    UpdateCartItemRequest,
    VerifyPrescriptionRequest,
)
from pharmacy.cart.cart import Cart
from pharmacy.cart.items import AddToCart, ClearCart, RemoveFromCart, UpdateCartItem
from pharmacy.cart.management import get_or_create_cart
from pharmacy.cart.reconciliation import sweep
from pharmacy.maintenance.health import low_stock_products, system_health
from pharmacy.maintenance.history import PruneStatusHistory
from pharmacy.maintenance.revenue import RecordPendingRevenue
from pharmacy.order.creation import PlaceOrder
from pharmacy.order.lifecycle import TransitionOrderStatus
from pharmacy.order.payments import ProcessRefund, RecordPayment
from pharmacy.order.prescriptions import VerifyPrescription
from pharmacy.projections.order_tracking import track_order
from pharmacy.stock.ledger import get_product
from pharmacy.stock.registration import DiscontinueProduct, RegisterProduct
from pharmacy.utils.concurrency import dispatch


def _cart_response(cart) -> CartResponse:
    return CartResponse(
        cart_id=str(cart.id),
        customer_id=str(cart.customer_id) if cart.customer_id else None,
        session_id=cart.session_id,
        status=cart.status,
        items=[
            CartItemResponse(
                product_id=str(item.product_id),
                purchase_type=item.purchase_type,
                quantity=item.quantity,
                unit_price=item.unit_price,
                line_total=item.line_total,
                reserved_base_units=item.reserved_base_units,
            )
            for item in cart.items
        ],
        subtotal=cart.subtotal or 0.0,
        total_items=cart.total_items or 0,
        expires_at=cart.expires_at.isoformat() if cart.expires_at else None,
    )


# ---------------------------------------------------------------------------
# Product Router
# ---------------------------------------------------------------------------
product_router = APIRouter(prefix="/products", tags=["products"])


@product_router.post("", status_code=201, response_model=ProductIdResponse)
async def register_product(body: RegisterProductRequest) -> ProductIdResponse:
    command = RegisterProduct(**body.model_dump())
    result = dispatch(command)
    return ProductIdResponse(product_id=result)


@product_router.get("/{product_id}/stock", response_model=StockLevelResponse)
async def get_stock_level(product_id: str) -> StockLevelResponse:
    product = get_product(product_id)
    return StockLevelResponse(
        product_id=str(product.id),
        name=product.name,
        stock=product.stock,
        reserved_stock=product.reserved_stock,
        available_stock=product.available_stock,
        status=product.status,
    )


@product_router.put("/{product_id}/discontinue", response_model=StatusResponse)
async def discontinue_product(product_id: str) -> StatusResponse:
    dispatch(DiscontinueProduct(product_id=product_id))
    return StatusResponse()


# ---------------------------------------------------------------------------
# Cart Router
# ---------------------------------------------------------------------------
cart_router = APIRouter(prefix="/carts", tags=["carts"])


@cart_router.post("", response_model=CartResponse)
async def open_cart(body: OpenCartRequest) -> CartResponse:
    """Return the owner's active cart, opening a new one if needed."""
    cart = get_or_create_cart(customer_id=body.customer_id, session_id=body.session_id)
    return _cart_response(cart)


@cart_router.get("/{cart_id}", response_model=CartResponse)
async def get_cart(cart_id: str) -> CartResponse:
    cart = current_domain.repository_for(Cart).get(cart_id)
    return _cart_response(cart)


@cart_router.post("/{cart_id}/items", response_model=CartResponse)
async def add_cart_item(cart_id: str, body: AddToCartRequest) -> CartResponse:
    command = AddToCart(
        cart_id=cart_id,
        product_id=body.product_id,
        quantity=body.quantity,
        purchase_type=body.purchase_type,
    )
    dispatch(command)
    return _cart_response(current_domain.repository_for(Cart).get(cart_id))


@cart_router.put("/{cart_id}/items/{product_id}", response_model=CartResponse)
async def update_cart_item(cart_id: str, product_id: str, body: UpdateCartItemRequest) -> CartResponse:
    command = UpdateCartItem(
        cart_id=cart_id,
        product_id=product_id,
        purchase_type=body.purchase_type,
        new_quantity=body.new_quantity,
    )
    dispatch(command)
    return _cart_response(current_domain.repository_for(Cart).get(cart_id))


@cart_router.delete("/{cart_id}/items/{product_id}", response_model=CartResponse)
async def remove_cart_item(cart_id: str, product_id: str, purchase_type: str = "package") -> CartResponse:
    command = RemoveFromCart(cart_id=cart_id, product_id=product_id, purchase_type=purchase_type)
    dispatch(command)
    return _cart_response(current_domain.repository_for(Cart).get(cart_id))


@cart_router.delete("/{cart_id}/items", response_model=CartResponse)
async def clear_cart(cart_id: str) -> CartResponse:
    dispatch(ClearCart(cart_id=cart_id))
    return _cart_response(current_domain.repository_for(Cart).get(cart_id))


@cart_router.post("/{cart_id}/checkout", status_code=201, response_model=OrderIdResponse)
async def checkout(cart_id: str, body: CheckoutRequest) -> OrderIdResponse:
    command = PlaceOrder(
        cart_id=cart_id,
        delivery_address=json.dumps(body.delivery_address.model_dump()),
        payment_method=body.payment_method,
        customer_name=body.customer_name,
        contact_phone=body.contact_phone,
        contact_email=body.contact_email,
        prescriptions=json.dumps(body.prescriptions),
    )
    result = dispatch(command)
    return OrderIdResponse(order_id=result)


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.put("/{order_id}/status", response_model=OrderStatusResponse)
async def transition_order_status(order_id: str, body: TransitionRequest) -> OrderStatusResponse:
    command = TransitionOrderStatus(
        order_id=order_id,
        status=body.status,
        actor=body.actor,
        notes=body.notes,
    )
    status = dispatch(command)
    return OrderStatusResponse(order_id=order_id, status=status)


@order_router.put(
    "/{order_id}/prescriptions/{prescription_id}",
    response_model=StatusResponse,
)
async def verify_prescription(order_id: str, prescription_id: str, body: VerifyPrescriptionRequest) -> StatusResponse:
    command = VerifyPrescription(
        order_id=order_id,
        prescription_id=prescription_id,
        approved=body.approved,
        notes=body.notes,
        actor=body.actor,
    )
    outcome = dispatch(command)
    return StatusResponse(status=outcome)


@order_router.post("/{order_id}/payments", response_model=StatusResponse)
async def record_payment(order_id: str, body: RecordPaymentRequest) -> StatusResponse:
    dispatch(RecordPayment(order_id=order_id, amount=body.amount))
    return StatusResponse()


@order_router.post("/{order_id}/refund", response_model=StatusResponse)
async def process_refund(order_id: str, body: RefundRequest) -> StatusResponse:
    dispatch(ProcessRefund(order_id=order_id, actor=body.actor))
    return StatusResponse()


# ---------------------------------------------------------------------------
# Tracking Router
# ---------------------------------------------------------------------------
tracking_router = APIRouter(prefix="/tracking", tags=["tracking"])


@tracking_router.get("", response_model=TrackingResponse)
async def track(order_number: str, phone: str | None = None, customer_id: str | None = None) -> TrackingResponse:
    """Look up an order by number. Requires the checkout phone or the owning account."""
    view = track_order(order_number, phone=phone, customer_id=customer_id)
    return TrackingResponse(
        order_number=view.order_number,
        status=view.status,
        total=view.total or 0.0,
        items=json.loads(view.items) if view.items else [],
        delivery_address=json.loads(view.delivery_address) if view.delivery_address else {},
        history=json.loads(view.history) if view.history else [],
    )


# ---------------------------------------------------------------------------
# Maintenance Router
# ---------------------------------------------------------------------------
maintenance_router = APIRouter(prefix="/maintenance", tags=["maintenance"])


@maintenance_router.post("/sweep-carts", response_model=CountResponse)
async def sweep_carts() -> CountResponse:
    return CountResponse(count=sweep())


@maintenance_router.post("/record-revenue", response_model=CountResponse)
async def record_pending_revenue() -> CountResponse:
    result = dispatch(RecordPendingRevenue())
    return CountResponse(count=result)


@maintenance_router.post("/prune-history", response_model=CountResponse)
async def prune_history(body: PruneHistoryRequest) -> CountResponse:
    result = dispatch(PruneStatusHistory(keep=body.keep))
    return CountResponse(count=result)


@maintenance_router.get("/low-stock", response_model=list[LowStockItem])
async def low_stock() -> list[LowStockItem]:
    return [
        LowStockItem(
            product_id=str(product.id),
            name=product.name,
            available_stock=product.available_stock,
            threshold=product.low_stock_threshold,
        )
        for product in low_stock_products()
    ]


@maintenance_router.get("/health")
async def health() -> dict:
    return system_health()
