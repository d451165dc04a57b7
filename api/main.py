"""
api/main.py — FastAPI application entry point.

Run with:
    uvicorn api.main:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from leadvalidator.config import settings
from leadvalidator.db.models import Base
from leadvalidator.db.session import engine
from api.endpoints.lead_routes import router as lead_router
from api.endpoints.validate_routes import router as validate_router

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


# ── Lifespan ─────────────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown logic."""
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    Base.metadata.create_all(bind=engine)
    logger.info("Database connection verified.")
    yield
    logger.info("Application shutting down.")


# ── App ───────────────────────────────────────────────────────────────────────

app = FastAPI(
    title="Lead Validator",
    description=(
        "Scores form submissions from third-party websites, filters spam and "
        "bots, and forwards qualified leads to each project's webhook."
    ),
    version="1.0.0",
    lifespan=lifespan,
)

# submissions come straight from browsers on customer sites
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(validate_router, prefix="/v1", tags=["Validation"])
app.include_router(lead_router, prefix="/leads", tags=["Leads"])


# ── Health check ─────────────────────────────────────────────────────────────

@app.get("/health", tags=["System"])
def health_check():
    """Returns service liveness status."""
    return {"status": "ok", "service": "lead-validator"}
