from __future__ import annotations

import logging
import os
from typing import List, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from gamerewards.api.errors import ApiError, error_body
from gamerewards.api.routes_public import public_router
from gamerewards.api.security import RateLimitMiddleware, RequestSizeLimitMiddleware
from gamerewards.api.structured_logging import RequestLogMiddleware
from gamerewards.runtime.boot import build_dispatcher
from gamerewards.runtime.boot import build_engine as _build_engine
from gamerewards.runtime.config import RewardsConfig, load_rewards_config
from gamerewards.runtime.engine import SettlementEngine
from gamerewards.runtime.errors import RewardError
from gamerewards.runtime.logs import configure_structured_logging, log_event

log = logging.getLogger("gamerewards.api")


def build_engine(cfg: RewardsConfig) -> SettlementEngine:
    """Build the SettlementEngine for the API runtime.

    Tests monkeypatch `gamerewards.api.app.build_engine` to swap in an
    in-memory store.
    """
    return _build_engine(cfg)


def _parse_cors_origins(mode: str) -> List[str]:
    """CORS origins from REWARDS_CORS_ORIGINS (comma-separated).

    Unset means CORS is disabled. Wildcard "*" is rejected in prod.
    """
    raw = os.environ.get("REWARDS_CORS_ORIGINS", "").strip()
    if not raw:
        return []

    origins = [o.strip() for o in raw.split(",") if o.strip()]
    if "*" in origins:
        if mode == "prod":
            raise RuntimeError(
                "Unsafe CORS configuration: wildcard '*' not allowed in production. "
                "Set explicit origins in REWARDS_CORS_ORIGINS."
            )
        return ["*"]
    return origins


def _install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(RewardError)
    async def _reward_error(request: Request, exc: RewardError) -> JSONResponse:
        err = ApiError.from_reward_error(exc)
        return JSONResponse(status_code=err.status_code, content=err.body())

    @app.exception_handler(ApiError)
    async def _api_error(request: Request, exc: ApiError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.body())

    @app.exception_handler(ValueError)
    async def _malformed(request: Request, exc: ValueError) -> JSONResponse:
        return JSONResponse(status_code=400, content=error_body("bad_request", str(exc)))

    @app.exception_handler(RequestValidationError)
    async def _invalid_body(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = [{"loc": list(e.get("loc", ())), "msg": str(e.get("msg", ""))} for e in exc.errors()]
        return JSONResponse(status_code=400, content=error_body("bad_request", "invalid request body", {"errors": errors}))


def create_app(*, boot_runtime: bool = True, cfg: Optional[RewardsConfig] = None) -> FastAPI:
    """Create the FastAPI application.

    boot_runtime:
      - True (default): load config, attach engine + dispatcher
      - False: no runtime; routes that need the engine answer 503
    """
    if boot_runtime:
        cfg = cfg or load_rewards_config()
    mode = (cfg.mode if cfg is not None else os.environ.get("REWARDS_MODE", "prod")).strip().lower()

    configure_structured_logging(cfg.log_level if cfg is not None else None)

    if mode == "prod":
        app = FastAPI(title="Game Rewards API", docs_url=None, redoc_url=None, openapi_url=None)
    else:
        app = FastAPI(title="Game Rewards API")

    app.state.cfg = cfg
    app.state.engine = None
    app.state.dispatcher = None
    if boot_runtime and cfg is not None:
        engine = build_engine(cfg)
        app.state.engine = engine
        app.state.dispatcher = build_dispatcher(engine, cfg)
        log_event(log, "api_booted", mode=mode, db_path=cfg.db_path, allow_unsigned=cfg.allow_unsigned_requests)

    _install_error_handlers(app)

    # Last added runs first: logging wraps rate limiting wraps size limiting.
    app.add_middleware(RequestSizeLimitMiddleware)
    app.add_middleware(RateLimitMiddleware)

    cors_origins = _parse_cors_origins(mode)
    if cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cors_origins,
            allow_credentials=cors_origins != ["*"],
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["Content-Type", "X-Request-Id"],
        )

    app.add_middleware(RequestLogMiddleware)

    app.include_router(public_router)

    return app
