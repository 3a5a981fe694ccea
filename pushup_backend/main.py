import logging
import os

from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv

# Load env from pushup_backend/.env
backend_dir = os.path.dirname(os.path.abspath(__file__))
if "PYTEST_CURRENT_TEST" not in os.environ:
    load_dotenv(dotenv_path=os.path.join(backend_dir, ".env"))

# Import after dotenv is loaded
from pushup_backend.core.config import settings, validate_config  # noqa: E402
from pushup_backend.core.logging import configure_logging  # noqa: E402
from pushup_backend.core.middleware.request_id import RequestIdMiddleware  # noqa: E402
from pushup_backend.core.validation import validate_env  # noqa: E402
from pushup_backend.core.errors import (  # noqa: E402
    AppError,
    app_error_handler,
    http_error_handler,
    unhandled_exception_handler,
)
from pushup_backend.api import challenges, health  # noqa: E402

configure_logging(settings.ENV)
validate_env()
validate_config(strict=getattr(settings, "CONFIG_STRICT", False))


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger = logging.getLogger("pushup")
    logger.info("Starting pushup challenge backend...")
    import time
    app.state.startup_time = time.time()
    try:
        yield
    finally:
        logging.getLogger("pushup").info("Stopping pushup challenge backend...")


app = FastAPI(title="Pushup Challenge - Backend", lifespan=lifespan)

# Middlewares
app.add_middleware(RequestIdMiddleware)

app.add_exception_handler(AppError, app_error_handler)
app.add_exception_handler(HTTPException, http_error_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

# CORS (adjust origins in production)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in settings.CORS_ALLOWED_ORIGINS.split(",") if origin.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(challenges.router, tags=["challenges"])
app.include_router(health.root_router, tags=["health"])
