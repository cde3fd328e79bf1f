from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tvfees.core.config import settings
from tvfees.routers import fees, payments, receipts, users, wallets

OPENAPI_TAGS = [
    {"name": "Fees", "description": "Calculate and quote yearly subscription fees."},
    {"name": "Users", "description": "Register wallet owners."},
    {"name": "Wallets", "description": "Prepaid wallet balances, top-ups and transfers."},
    {"name": "Payments", "description": "Payment intents, review and approval."},
    {"name": "Receipts", "description": "Receipt lookup by number and per user."},
]

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.version,
    description=(
        "Subscription fee collection for a pay-TV operator: fee quotes, "
        "payment intents across cash, wallet and payment-app channels, "
        "admin approval and sequential receipts."
    ),
    openapi_tags=OPENAPI_TAGS,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(fees.router, prefix="/v1/fees", tags=["Fees"])
app.include_router(users.router, prefix="/v1/users", tags=["Users"])
app.include_router(wallets.router, prefix="/v1/wallets", tags=["Wallets"])
app.include_router(payments.router, prefix="/v1/payments", tags=["Payments"])
app.include_router(receipts.router, prefix="/v1/receipts", tags=["Receipts"])


@app.get("/")
async def root() -> dict[str, str]:
    return {"app": settings.APP_NAME, "version": settings.version, "status": "running"}


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "healthy"}
