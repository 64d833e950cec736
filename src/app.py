"""Car-wash payments FastAPI application.

Web server for the payments domain. Commands are processed synchronously
within each request; every request is wrapped in the payments domain
context.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level so uvicorn workers share it.
# PROTEAN_ENV selects the config overlay from payments/domain.toml.
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers

from payments.domain import payments
from payments.utils.logging import configure_logging

configure_logging()
payments.init()

# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Car-Wash Payments API",
    description="Invoice creation, payment status and gateway webhooks for bookings and subscriptions",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)


@app.middleware("http")
async def domain_context_middleware(request: Request, call_next):
    """Push the payments domain context for each request."""
    with payments.domain_context():
        response = await call_next(request)
    return response


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
from payments.api.routes import booking_router, payment_router, subscription_router  # noqa: E402
from payments.webhook.receiver import rejected_count  # noqa: E402

app.include_router(payment_router)
app.include_router(booking_router)
app.include_router(subscription_router)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return JSONResponse(
        content={
            "status": "ok",
            "domain": payments.name,
            "webhook_rejections": rejected_count(),
        }
    )
