"""Pydantic request/response schemas for the Marketplace API.

These are external contracts (anti-corruption layer) — separate from
internal Protean commands.
"""

from datetime import datetime

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class AddressSchema(BaseModel):
    recipient: str | None = None
    street: str
    city: str
    state: str | None = None
    postal_code: str
    country: str


class StatusResponse(BaseModel):
    status: str = "ok"


# ---------------------------------------------------------------------------
# Catalogue
# ---------------------------------------------------------------------------
class ListProductRequest(BaseModel):
    seller_id: str
    name: str
    price: float = Field(ge=0)
    stock_quantity: int = Field(ge=0, default=0)


class ImportProductRequest(BaseModel):
    retailer_id: str
    source_product_id: str


class ProductIdResponse(BaseModel):
    product_id: str


class RegisterShopRequest(BaseModel):
    address: AddressSchema


# ---------------------------------------------------------------------------
# Inventory
# ---------------------------------------------------------------------------
class ReservationLineSchema(BaseModel):
    product_id: str
    quantity: int = Field(ge=1)


class ReserveStockRequest(BaseModel):
    items: list[ReservationLineSchema] = Field(min_length=1)


class ReserveStockResponse(BaseModel):
    success: bool
    error: str | None = None


class AdjustStockRequest(BaseModel):
    quantity: int = Field(ge=0)
    mode: str  # add, subtract, set


class StockLevelResponse(BaseModel):
    product_id: str
    stock_quantity: int


# ---------------------------------------------------------------------------
# Cart
# ---------------------------------------------------------------------------
class AddToCartRequest(BaseModel):
    product_id: str
    quantity: int = Field(ge=1, default=1)


class CartIdResponse(BaseModel):
    cart_id: str


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------
class CheckoutRequest(BaseModel):
    user_id: str
    shipping_address: AddressSchema


class SchedulePickupRequest(BaseModel):
    user_id: str
    scheduled_at: datetime


class OrderIdResponse(BaseModel):
    order_id: str


class CancelOrderRequest(BaseModel):
    reason: str | None = None


class ConfirmPickupRequest(BaseModel):
    user_id: str


class WholesalerPaymentRequest(BaseModel):
    retailer_id: str
    payment_captured: bool
    actor_role: str


class WholesalerPaymentResponse(BaseModel):
    fulfillment_order_ids: list[str]


class DispatchRequest(BaseModel):
    actor_id: str
    actor_role: str


class DispatchResponse(BaseModel):
    order_id: str
    branch: str
    destination: dict | None = None
    shipped_at: datetime


class CompleteDeliveriesRequest(BaseModel):
    as_of: datetime | None = None


class CompleteDeliveriesResponse(BaseModel):
    delivered: int
