"""FastAPI application entry point.

Run with: uvicorn src.main:app --reload --port 8000
"""

# ruff: noqa: E402  -- uvloop.install() must run before other imports

import uvloop

uvloop.install()

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy import text

from config.settings import settings
from src.stk_common.database import engine
from src.stk_common.errors import AppError, ValidationError
from src.stk_common.redis_client import close_redis, get_redis
from src.stk_common.response import error_response
from src.stk_gateway.middleware.request_log import RequestLogMiddleware
from src.stk_market.api.router import router as bets_router
from src.stk_settlement.api.router import router as admin_router
from src.stk_stake.api.router import router as stakes_router
from src.stk_wallet.api.router import router as wallet_router

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: verify DB (+ Redis when it backs the locks). Shutdown: dispose."""
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    if settings.LOCK_BACKEND == "redis":
        await (await get_redis()).ping()
    logger.info("%s started (locks=%s)", settings.APP_NAME, settings.LOCK_BACKEND)
    yield
    await engine.dispose()
    await close_redis()


app = FastAPI(
    title=settings.APP_NAME,
    version="0.1.0",
    lifespan=lifespan,
)


app.add_middleware(RequestLogMiddleware)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    resp = error_response(exc.code, exc.message, exc.kind)
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    if exc.http_status >= 500:
        logger.error("Unhandled %s: %s", exc.kind, exc.message)
    return JSONResponse(
        status_code=exc.http_status,
        content=resp.model_dump(),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Render body/query validation failures in the ApiResponse envelope."""
    detail = "; ".join(
        f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
    )
    return await app_error_handler(request, ValidationError(f"Invalid request: {detail}"))


app.include_router(wallet_router, prefix="/api/v1")
app.include_router(bets_router, prefix="/api/v1")
app.include_router(stakes_router, prefix="/api/v1")
app.include_router(admin_router, prefix="/api/v1")


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok", "version": "0.1.0"}
