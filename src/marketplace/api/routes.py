"""FastAPI routes for the Marketplace — catalogue, stock, carts and orders."""

import json
from dataclasses import asdict

from fastapi import APIRouter
from protean.utils.globals import current_domain

from marketplace.api.schemas import (
    AddToCartRequest,
    AdjustStockRequest,
    CancelOrderRequest,
    CartIdResponse,
    CheckoutRequest,
    CompleteDeliveriesRequest,
    CompleteDeliveriesResponse,
    ConfirmPickupRequest,
    DispatchRequest,
    DispatchResponse,
    ImportProductRequest,
    ListProductRequest,
    OrderIdResponse,
    ProductIdResponse,
    RegisterShopRequest,
    ReserveStockRequest,
    ReserveStockResponse,
    SchedulePickupRequest,
    StatusResponse,
    StockLevelResponse,
    WholesalerPaymentRequest,
    WholesalerPaymentResponse,
)
from marketplace.catalogue.listing import ImportWholesalerProduct, ListProduct
from marketplace.dropship.payment import RecordWholesalerPayment
from marketplace.inventory.adjustment import AdjustStock, ReserveStock
from marketplace.ordering.cart_items import AddToCart, RemoveFromCart
from marketplace.ordering.checkout import Checkout
from marketplace.ordering.lifecycle import CancelOrder, CompleteDueDeliveries, ConfirmPickup, MarkProcessing
from marketplace.pickup.scheduling import SchedulePickup
from marketplace.shared.errors import InsufficientStock
from marketplace.shipping.dispatcher import DispatchOrder
from marketplace.shops import get_shop_directory

# ---------------------------------------------------------------------------
# Product Router
# ---------------------------------------------------------------------------
product_router = APIRouter(prefix="/products", tags=["products"])


@product_router.post("", status_code=201, response_model=ProductIdResponse)
async def list_product(body: ListProductRequest) -> ProductIdResponse:
    command = ListProduct(
        seller_id=body.seller_id,
        name=body.name,
        price=body.price,
        stock_quantity=body.stock_quantity,
    )
    result = current_domain.process(command, asynchronous=False)
    return ProductIdResponse(product_id=result)


@product_router.post("/import", status_code=201, response_model=ProductIdResponse)
async def import_product(body: ImportProductRequest) -> ProductIdResponse:
    command = ImportWholesalerProduct(
        retailer_id=body.retailer_id,
        source_product_id=body.source_product_id,
    )
    result = current_domain.process(command, asynchronous=False)
    return ProductIdResponse(product_id=result)


# ---------------------------------------------------------------------------
# Shop Router
# ---------------------------------------------------------------------------
shop_router = APIRouter(prefix="/shops", tags=["shops"])


@shop_router.put("/{retailer_id}", response_model=StatusResponse)
async def register_shop(retailer_id: str, body: RegisterShopRequest) -> StatusResponse:
    get_shop_directory().register(retailer_id, body.address.model_dump())
    return StatusResponse()


# ---------------------------------------------------------------------------
# Inventory Router
# ---------------------------------------------------------------------------
inventory_router = APIRouter(prefix="/inventory", tags=["inventory"])


@inventory_router.post("/reserve", response_model=ReserveStockResponse)
async def reserve_stock(body: ReserveStockRequest) -> ReserveStockResponse:
    command = ReserveStock(items=json.dumps([line.model_dump() for line in body.items]))
    try:
        current_domain.process(command, asynchronous=False)
    except InsufficientStock as exc:
        return ReserveStockResponse(success=False, error=exc.messages["stock"][0])
    return ReserveStockResponse(success=True)


@inventory_router.put("/{product_id}/adjust", response_model=StockLevelResponse)
async def adjust_stock(product_id: str, body: AdjustStockRequest) -> StockLevelResponse:
    command = AdjustStock(product_id=product_id, quantity=body.quantity, mode=body.mode)
    new_stock = current_domain.process(command, asynchronous=False)
    return StockLevelResponse(product_id=product_id, stock_quantity=new_stock)


# ---------------------------------------------------------------------------
# Cart Router
# ---------------------------------------------------------------------------
cart_router = APIRouter(prefix="/carts", tags=["carts"])


@cart_router.post("/{user_id}/items", status_code=201, response_model=CartIdResponse)
async def add_to_cart(user_id: str, body: AddToCartRequest) -> CartIdResponse:
    command = AddToCart(user_id=user_id, product_id=body.product_id, quantity=body.quantity)
    result = current_domain.process(command, asynchronous=False)
    return CartIdResponse(cart_id=result)


@cart_router.delete("/{user_id}/items/{product_id}", response_model=StatusResponse)
async def remove_from_cart(user_id: str, product_id: str) -> StatusResponse:
    current_domain.process(RemoveFromCart(user_id=user_id, product_id=product_id), asynchronous=False)
    return StatusResponse()


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("/checkout", status_code=201, response_model=OrderIdResponse)
async def checkout(body: CheckoutRequest) -> OrderIdResponse:
    command = Checkout(
        user_id=body.user_id,
        shipping_address=json.dumps(body.shipping_address.model_dump()),
    )
    result = current_domain.process(command, asynchronous=False)
    return OrderIdResponse(order_id=result)


@order_router.post("/pickup", status_code=201, response_model=OrderIdResponse)
async def schedule_pickup(body: SchedulePickupRequest) -> OrderIdResponse:
    command = SchedulePickup(user_id=body.user_id, scheduled_at=body.scheduled_at)
    result = current_domain.process(command, asynchronous=False)
    return OrderIdResponse(order_id=result)


@order_router.put("/{order_id}/processing", response_model=StatusResponse)
async def mark_processing(order_id: str) -> StatusResponse:
    current_domain.process(MarkProcessing(order_id=order_id), asynchronous=False)
    return StatusResponse()


@order_router.put("/{order_id}/cancel", response_model=StatusResponse)
async def cancel_order(order_id: str, body: CancelOrderRequest) -> StatusResponse:
    current_domain.process(CancelOrder(order_id=order_id, reason=body.reason), asynchronous=False)
    return StatusResponse()


@order_router.put("/{order_id}/pickup/confirm", response_model=StatusResponse)
async def confirm_pickup(order_id: str, body: ConfirmPickupRequest) -> StatusResponse:
    current_domain.process(ConfirmPickup(order_id=order_id, user_id=body.user_id), asynchronous=False)
    return StatusResponse()


@order_router.post("/{order_id}/wholesaler-payment", response_model=WholesalerPaymentResponse)
async def record_wholesaler_payment(order_id: str, body: WholesalerPaymentRequest) -> WholesalerPaymentResponse:
    command = RecordWholesalerPayment(
        order_id=order_id,
        retailer_id=body.retailer_id,
        payment_captured=body.payment_captured,
        actor_role=body.actor_role,
    )
    result = current_domain.process(command, asynchronous=False)
    return WholesalerPaymentResponse(fulfillment_order_ids=result)


@order_router.put("/{order_id}/dispatch", response_model=DispatchResponse)
async def dispatch_order(order_id: str, body: DispatchRequest) -> DispatchResponse:
    command = DispatchOrder(order_id=order_id, actor_id=body.actor_id, actor_role=body.actor_role)
    result = current_domain.process(command, asynchronous=False)
    return DispatchResponse(**asdict(result))


# ---------------------------------------------------------------------------
# Maintenance Router
# ---------------------------------------------------------------------------
maintenance_router = APIRouter(prefix="/maintenance", tags=["maintenance"])


@maintenance_router.post("/deliveries/complete", response_model=CompleteDeliveriesResponse)
async def complete_deliveries(body: CompleteDeliveriesRequest) -> CompleteDeliveriesResponse:
    delivered = current_domain.process(CompleteDueDeliveries(as_of=body.as_of), asynchronous=False)
    return CompleteDeliveriesResponse(delivered=delivered)
