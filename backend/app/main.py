from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.responses import Response

from app.core.auth import require_operator
from app.core.config import settings
from app.routers import audit_logs, payouts, restaurants, webhooks

OPENAPI_TAGS = [
    {"name": "Webhooks", "description": "Settlement and disbursement callbacks from providers."},
    {"name": "Restaurants", "description": "Tips, distribution groups, commission and payouts."},
    {"name": "Payouts", "description": "Operator batches: generation, disbursement, notices."},
    {"name": "Audit Logs", "description": "Query the audit trail for ledger entities."},
]

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.version,
    description=(
        "Tip settlement and payout engine. Reconciles tip payments, splits "
        "restaurant-wide tips across staff groups and disburses monthly payouts."
    ),
    openapi_tags=OPENAPI_TAGS,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def options_handler(request: Request, call_next):  # type: ignore[no-untyped-def]
    if request.method == "OPTIONS":
        origin = request.headers.get("origin", "*")
        return Response(
            status_code=200,
            headers={
                "Access-Control-Allow-Origin": origin,
                "Access-Control-Allow-Methods": "*",
                "Access-Control-Allow-Headers": "*",
                "Access-Control-Allow-Credentials": "true",
                "Access-Control-Max-Age": "86400",
            },
        )
    return await call_next(request)


app.include_router(webhooks.router, prefix="/v1/webhooks", tags=["Webhooks"])
app.include_router(restaurants.router, prefix="/v1/restaurants", tags=["Restaurants"])
app.include_router(
    payouts.router,
    prefix="/v1/payouts",
    tags=["Payouts"],
    dependencies=[Depends(require_operator)],
)
app.include_router(
    audit_logs.router,
    prefix="/v1/audit_logs",
    tags=["Audit Logs"],
    dependencies=[Depends(require_operator)],
)


@app.get("/")
async def root() -> dict[str, str]:
    return {
        "app": settings.APP_NAME,
        "version": settings.version,
        "domain": settings.APP_DOMAIN,
        "status": "running",
    }
