"""Application entry-point.

:func:`create_app` builds the FastAPI instance served by ``uvicorn``. Building
it in a function keeps tests isolated: each test gets a fresh app wired to the
configuration as it stands at that moment.
"""

import logging
from urllib.parse import urlparse

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from portfolio_tracker import config_module
from portfolio_tracker.logging_setup import setup_logging
from portfolio_tracker.routes.portfolio import router as portfolio_router

logger = logging.getLogger(__name__)

DEFAULT_CORS = ["http://localhost:3000", "http://localhost:5173"]


def _validate_cors_origins(origins: list[str]) -> list[str]:
    """Ensure each origin uses http(s) and names a concrete host."""
    validated: list[str] = []
    for origin in origins:
        parsed = urlparse(origin)
        if parsed.scheme in {"http", "https"} and parsed.netloc and "*" not in parsed.netloc:
            validated.append(origin)
        else:
            raise ValueError(f"Invalid CORS origin: {origin}")
    return validated


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    cfg = config_module.config
    setup_logging()

    app = FastAPI(title="Portfolio Tracker API", version="1.0", docs_url="/docs")

    limiter = Limiter(
        key_func=get_remote_address,
        default_limits=[f"{cfg.rate_limit_per_minute}/minute"],
        storage_uri="memory://",
    )
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # ───────────────────────────── CORS ─────────────────────────────
    cors_origins = _validate_cors_origins(list(dict.fromkeys((cfg.cors_origins or []) + DEFAULT_CORS)))
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
        allow_credentials=True,
    )
    # after CORS so preflight requests are not rate limited
    app.add_middleware(SlowAPIMiddleware)

    app.include_router(portfolio_router)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Return 422 for body errors and 400 for query errors."""
        status = 422 if exc.body is not None else 400
        return JSONResponse(status_code=status, content={"detail": jsonable_encoder(exc.errors())})

    # ────────────────────── Health-check endpoint ─────────────────────
    @app.get("/health")
    async def health():
        return {"status": "ok", "env": cfg.app_env}

    logger.info("Portfolio tracker API ready (env=%s, store=%s)", cfg.app_env, cfg.portfolio_store_uri)
    return app


# local dev server:  python -m portfolio_tracker.app
if __name__ == "__main__":  # pragma: no cover
    import uvicorn

    uvicorn.run(create_app(), host="0.0.0.0", port=config_module.config.uvicorn_port or 8000)
