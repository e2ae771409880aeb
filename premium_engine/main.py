import contextlib
import logging

from fastapi import FastAPI

from premium_engine.config import get_log_level
from premium_engine.errors import register_error_handlers
from premium_engine.insurance_database import create_tables
from premium_engine.router.catalog import router as catalog_router
from premium_engine.router.claim import router as claim_router
from premium_engine.router.members import router as members_router
from premium_engine.router.premiums import router as premiums_router
from premium_engine.router.providers import router as providers_router

logging.basicConfig(
    level=get_log_level(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@contextlib.asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Creates any missing tables on startup.
    """
    create_tables()
    yield


app = FastAPI(
    title="Premium & Claims Engine API",
    lifespan=lifespan,
)

register_error_handlers(app)

app.include_router(premiums_router, prefix="/api")
app.include_router(members_router, prefix="/api")
app.include_router(claim_router, prefix="/api")
app.include_router(catalog_router, prefix="/api")
app.include_router(providers_router, prefix="/api")
