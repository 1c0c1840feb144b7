import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.trustedhost import TrustedHostMiddleware

from lankatours import settings
from lankatours.routers import auth, bookings, guides, reviews, vehicles

logging.basicConfig(format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logging.getLogger("lankatours").setLevel(settings.LOG_LEVEL)

app = FastAPI(title="LankaTours API", version="0.1.0")

allow_any_origin = len(settings.CORS_ORIGINS) == 1 and settings.CORS_ORIGINS[0] == "*"

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    # Browsers reject wildcard CORS with credentials enabled.
    allow_credentials=not allow_any_origin,
    allow_methods=["*"],
    allow_headers=["*"],
)

if not (len(settings.TRUSTED_HOSTS) == 1 and settings.TRUSTED_HOSTS[0] == "*"):
    app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.TRUSTED_HOSTS)

app.include_router(auth.router)
app.include_router(guides.router)
app.include_router(vehicles.router)
app.include_router(bookings.router)
app.include_router(reviews.router)


@app.get("/health")
def health():
    return {"status": "ok"}
