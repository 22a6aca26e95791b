import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from dojo.core.config import settings, validate_config
from dojo.core.logging import configure_logging
from dojo.core.middleware.request_id import RequestIdMiddleware
from dojo.core.errors import (
    AppError,
    app_error_handler,
    http_error_handler,
    unhandled_exception_handler,
)
from dojo.api import challenges, streaks, credentials, health

configure_logging(settings.ENV)
validate_config(strict=getattr(settings, "CONFIG_STRICT", False))


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger = logging.getLogger("dojo")
    logger.info("Starting Onchain Dojo backend...")
    app.state.startup_time = time.time()
    try:
        yield
    finally:
        logging.getLogger("dojo").info("Stopping Onchain Dojo backend...")


app = FastAPI(title="Onchain Dojo - Backend", lifespan=lifespan)

app.add_middleware(RequestIdMiddleware)

app.add_exception_handler(AppError, app_error_handler)
app.add_exception_handler(StarletteHTTPException, http_error_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in settings.ALLOWED_ORIGINS.split(",") if origin.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(challenges.router, tags=["challenges"])
app.include_router(streaks.router, tags=["streaks"])
app.include_router(credentials.router, tags=["credentials"])
app.include_router(health.root_router, tags=["health"])
