from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from criblink.api.routers import listings
from criblink.core.config import settings
from criblink.core.database import db_client
import logging

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="CribLink Listings API",
    description="Listings search with free-text parsing, role-based visibility and ranking",
    version="1.0.0"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(listings.router, prefix="/api/listings", tags=["listings"])

@app.on_event("startup")
async def startup_event():
    """Open the database pool before serving requests"""
    await db_client.connect()
    logger.info(
        f"Listings API ready (pool_size={settings.DB_POOL_SIZE}, "
        f"max_overflow={settings.DB_MAX_OVERFLOW})"
    )

@app.on_event("shutdown")
async def shutdown_event():
    await db_client.disconnect()

@app.get("/")
async def root():
    return {"message": "CribLink Listings API"}

@app.get("/health")
async def health_check():
    """Database reachability and connection pool usage.

    The API only depends on PostgreSQL, so the overall status is "degraded"
    whenever the database is unreachable or not yet connected.
    """
    database = await db_client.status()
    return {
        "status": "healthy" if database["status"] == "healthy" else "degraded",
        "services": {"database": database},
    }
