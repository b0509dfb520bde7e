from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from eventplan.core.config import settings
from eventplan.routers import events, payments, quota, subscriptions

OPENAPI_TAGS = [
    {"name": "Events", "description": "Permissions, entitlements and resolved access per event."},
    {"name": "Subscriptions", "description": "Plans, trial and event subscriptions."},
    {"name": "Payments", "description": "Mobile-money payments and provider notifications."},
    {"name": "Quota", "description": "Account event creation quota."},
]

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.version,
    description=(
        "Feature access and payment activation API for the event planner. "
        "Resolves what each collaborator may do on an event and turns "
        "mobile-money payments into paid subscriptions."
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
    expose_headers=["Idempotency-Replayed"],
)

app.include_router(events.router, prefix="/events", tags=["Events"])
app.include_router(subscriptions.router, prefix="/subscriptions", tags=["Subscriptions"])
app.include_router(payments.router, prefix="/payments", tags=["Payments"])
app.include_router(quota.router, prefix="/user", tags=["Quota"])


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}
