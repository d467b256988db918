import os
import logging
import argparse
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import FileResponse, HTMLResponse
from fastapi.staticfiles import StaticFiles
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from commons import limiter
from configs.config import get_config
from logging_config import setup_logging
from security import RequestIdMiddleware, SecurityHeadersMiddleware
from anyscribe.context import ServerContext
from anyscribe.routes import events_routes, health_routes, transcription_routes
from anyscribe.transcription.cli import ensure_transcriber

# ── Logging ──────────────────────────────────────────────────────────────────
setup_logging()
logger = logging.getLogger(__name__)

cfg = get_config()

STATIC_DIR = os.path.join(os.path.dirname(__file__), "anyscribe", "static")
INDEX_HTML = os.path.join(STATIC_DIR, "index.html")

FALLBACK_HTML = """
<html>
<body style="font-family: sans-serif; padding: 20px;">
    <h1>Transcribe Anything</h1>
    <p>The API is running, but the web client was not found.</p>
    <p><a href="/api/health">Health check</a></p>
</body>
</html>
"""


# ── App Factory ──────────────────────────────────────────────────────────────
def create_app(
    context: Optional[ServerContext] = None,
    preflight: Optional[bool] = None,
) -> FastAPI:
    """Build the application around a fresh (or given) server context."""
    if context is None:
        context = ServerContext.from_config(cfg)
    if preflight is None:
        preflight = cfg.PREFLIGHT_ENABLED

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if preflight:
            # Raises TranscriberUnavailableError, which aborts startup
            await ensure_transcriber(context.command)
        logger.info("Upload directory: %s", context.upload_dir)
        logger.info("Output directory: %s", context.output_dir_for("*"))
        yield
        await context.runner.shutdown()
        logger.info("Shutdown complete")

    app = FastAPI(
        title="Transcribe Anything Web",
        docs_url="/docs" if cfg.DOCS_ENABLED else None,
        redoc_url="/redoc" if cfg.DOCS_ENABLED else None,
        openapi_url="/openapi.json" if cfg.DOCS_ENABLED else None,
        lifespan=lifespan,
    )
    app.state.context = context
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # ── Middleware Stack (order matters – outermost first) ───────────────
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(TrustedHostMiddleware, allowed_hosts=cfg.ALLOWED_HOSTS)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=cfg.CORS_METHODS,
        allow_headers=cfg.CORS_HEADERS,
    )

    app.include_router(transcription_routes.router)
    app.include_router(health_routes.router)
    app.include_router(events_routes.router)

    if os.path.isdir(STATIC_DIR):
        app.mount("/static", StaticFiles(directory=STATIC_DIR), name="static")

    # Anything that is not an API route is the single-page client
    @app.get("/{full_path:path}", include_in_schema=False)
    def spa(request: Request, full_path: str):
        if full_path.startswith("api/"):
            return HTMLResponse("Not Found", status_code=404)
        if os.path.isfile(INDEX_HTML):
            return FileResponse(INDEX_HTML, media_type="text/html")
        logger.error("Web client not found at %s", INDEX_HTML)
        return HTMLResponse(FALLBACK_HTML)

    return app


app = create_app()


# ═══════════════════════════════════════════════════════════════════════════
#  ENTRY POINT
# ═══════════════════════════════════════════════════════════════════════════

if __name__ == "__main__":
    import uvicorn

    parser = argparse.ArgumentParser(description="Run Transcribe Anything Web")
    parser.add_argument("--host", default=cfg.HOST, help=f"Host to bind to (default: {cfg.HOST})")
    parser.add_argument("--port", type=int, default=cfg.PORT, help=f"Port to bind to (default: {cfg.PORT})")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload on code changes")

    args = parser.parse_args()

    logger.info("Starting server on %s:%d", args.host, args.port)
    logger.info("  Local: http://localhost:%d", args.port)

    uvicorn.run(
        "main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level="info",
    )
