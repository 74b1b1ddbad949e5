"""FastAPI application entrypoint."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.v1 import v1_router
from app.core.config import get_settings
from app.core.database import async_session_factory, dispose_db, init_db
from app.core.errors import DomainError
from app.services.accounts import ensure_operator

_settings = get_settings()

logging.basicConfig(
    level=_settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    if not _settings.jwt_secret_key:
        logger.warning("JWT_SECRET_KEY is not set; sessions are signed with an empty key")
    # Startup: ensure tables exist (use Alembic in production)
    await init_db()
    if _settings.operator_email and _settings.operator_password:
        async with async_session_factory() as session:
            await ensure_operator(
                session,
                _settings.operator_email,
                _settings.operator_password,
                _settings.operator_name,
            )
    yield
    await dispose_db()


app = FastAPI(
    title="Bibliotecai Identity",
    version="0.1.0",
    description="Tenant onboarding, invitations and sign-in for school libraries",
    lifespan=lifespan,
)


# ── Errors ───────────────────────────────────────────────────

@app.exception_handler(DomainError)
async def domain_error_handler(_request: Request, exc: DomainError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.code, "detail": exc.message},
    )


# ── CORS ─────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in _settings.allowed_origins.split(",")],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── API routes ───────────────────────────────────────────────
app.include_router(v1_router)


@app.get("/health", tags=["system"])
async def health_check() -> dict:
    return {"status": "ok"}
