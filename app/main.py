# app/main.py
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import get_settings
from app.core.exceptions import register_exception_handlers
from app.database import create_db_and_tables

# Table models must be imported before create_all()
from app.models import notification, order, product, user, wishlist  # noqa: F401

from app.routers import admin, notifications, orders, products, users, wishlist as wishlist_router

settings = get_settings()

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("uvicorn")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Create missing tables on startup. A database that cannot be reached
    stops the boot instead of failing the first checkout.
    """
    logger.info("Startup: connecting to database...")
    try:
        create_db_and_tables()
    except Exception:
        logger.exception("Startup: database connection failed")
        raise
    logger.info("Startup: database ready")
    yield


app = FastAPI(title=settings.PROJECT_NAME, version="0.1.0", lifespan=lifespan)

register_exception_handlers(app)

app.add_middleware(
    CORSMiddleware,
    # storefront origin is always allowed, even if missing from CORS_ORIGINS
    allow_origins=list(dict.fromkeys([*settings.CORS_ORIGINS, settings.FRONTEND_URL])),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

for module in (users, products, wishlist_router, orders, notifications, admin):
    app.include_router(module.router, prefix=settings.API_V1_STR)


@app.get("/")
def root():
    """Liveness check."""
    return {"status": "ok", "service": "hijabworld-backend"}
