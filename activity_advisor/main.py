"""FastAPI application setup for the activity advisor."""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from .api import router as api_router
from .config import settings
from .data_sources import build_data_source
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Own one data source for the process and close it on shutdown."""
    with build_data_source(settings) as data_source:
        app.state.data_source = data_source
        logger.info("Data source ready")
        try:
            yield
        finally:
            app.state.data_source = None


app = FastAPI(title="Activity Advisor", lifespan=lifespan)


@app.get("/health")
def health():
    """Liveness probe."""
    return {"status": "ok"}


# API routes
app.include_router(api_router, prefix="/v1")
