"""Pharmacy storefront FastAPI application.

Processes commands synchronously via HTTP. Every request runs inside the
pharmacy domain context.

Usage:
    python src/manage.py setup-db
    uvicorn src.app:app --host 0.0.0.0 --port 8000 --reload
"""

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level so uvicorn workers share it.
# PROTEAN_ENV controls which config overlay is applied.
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers

from pharmacy.domain import pharmacy

pharmacy.init()

# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Pharmacy Storefront API",
    description="Inventory reservation and order lifecycle",
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
    """Push the pharmacy domain context for each request."""
    with pharmacy.domain_context():
        response = await call_next(request)
    return response


register_exception_handlers(app)

# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
from pharmacy.api import (  # noqa: E402
    cart_router,
    maintenance_router,
    order_router,
    product_router,
    tracking_router,
)

app.include_router(product_router)
app.include_router(cart_router)
app.include_router(order_router)
app.include_router(tracking_router)
app.include_router(maintenance_router)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return JSONResponse(content={"status": "ok", "domain": pharmacy.name})
