"""
Luxe Storefront - Main FastAPI Application

Single entry point for the shop and cart webapp API.
"""
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from storefront import __version__
from storefront.logging import get_logger
from storefront.routers import cart_router, shop_router
from storefront.routers.deps import GUEST_SESSION_HEADER

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler"""
    logger.info("Storefront API starting")
    yield
    logger.info("Storefront API stopped")


app = FastAPI(
    title="Luxe Storefront",
    description="Shop listing and cart API",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=[GUEST_SESSION_HEADER],
)

app.include_router(shop_router, prefix="/api/webapp")
app.include_router(cart_router, prefix="/api/webapp")


@app.get("/api/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "ok",
        "version": __version__,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
