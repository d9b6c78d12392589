"""Marketplace FastAPI application.

Processes commands synchronously via HTTP. Every request runs inside the
marketplace domain context.

Usage:
    uvicorn src.app:app --host 0.0.0.0 --port 8000 --reload
"""

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level so uvicorn workers share it.
# PROTEAN_ENV controls which config overlay is applied:
#   - "test"       → event_processing = "sync"
#   - "production" → event_processing = "async"
import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers

from marketplace.domain import marketplace
from marketplace.shared.errors import OrphanedReservation

marketplace.init()

logger = structlog.get_logger(__name__)

# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Marketplace API",
    description="Multi-vendor marketplace — stock reservation, orders, pickup and dropship fulfillment",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def domain_context_middleware(request: Request, call_next):
    """Push the Protean domain context for each request."""
    with marketplace.domain_context():
        response = await call_next(request)
    return response


register_exception_handlers(app)


@app.exception_handler(OrphanedReservation)
async def orphaned_reservation_handler(request: Request, exc: OrphanedReservation):
    # Details stay in the logs; callers only learn that they should retry
    logger.error("orphaned_reservation_response", path=request.url.path, lines=exc.lines)
    return JSONResponse(
        status_code=503,
        content={"error": "The order could not be completed. Please try again."},
    )


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
from marketplace.api import (  # noqa: E402
    cart_router,
    inventory_router,
    maintenance_router,
    order_router,
    product_router,
    shop_router,
)

app.include_router(product_router)
app.include_router(shop_router)
app.include_router(inventory_router)
app.include_router(cart_router)
app.include_router(order_router)
app.include_router(maintenance_router)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return JSONResponse(
        content={
            "status": "ok",
            "domains": {"marketplace": {"name": marketplace.name}},
        }
    )
