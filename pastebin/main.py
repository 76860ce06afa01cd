"""
Pastebin - Main FastAPI application.

Run with: uvicorn pastebin.main:create_app --factory
"""
import logging
import time
from typing import Callable, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse

from pastebin.config import Settings, settings as default_settings
from pastebin.errors import PasteError
from pastebin.routes import health, pastes
from pastebin.service import PasteService
from pastebin.storage.factory import Stores, build_stores
from pastebin.sweeper import ExpirySweeper

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

INDEX_BODY = """<form method="post" action="/">
            <textarea name="paste" rows="18" required></textarea>
            <p><button type="submit">Create paste</button></p>
        </form>
        <h2>Remove a paste</h2>
        <form method="post" action="/remove">
            <input name="paste_id" placeholder="Paste ID">
            <input name="paste_key" placeholder="Deletion key">
            <button type="submit">Remove</button>
        </form>"""


def create_app(
    settings: Optional[Settings] = None,
    stores: Optional[Stores] = None,
    clock: Callable[[], float] = time.time,
) -> FastAPI:
    """
    Build the application with its stores, service and sweeper.

    Args:
        settings: Application settings (environment by default)
        stores: Prebuilt stores; built from settings when omitted
        clock: Time source shared by the service and the sweeper
    """
    settings = settings or default_settings
    if settings.DEBUG:
        logging.getLogger("pastebin").setLevel(logging.DEBUG)

    stores = stores or build_stores(settings)
    service = PasteService(
        stores.content,
        stores.metadata,
        ttl_seconds=settings.PASTE_TTL_SECONDS,
        max_content_bytes=settings.MAX_PASTE_BYTES,
        base_url=settings.base_url,
        clock=clock,
    )
    sweeper = ExpirySweeper(
        stores.content,
        stores.metadata,
        interval_seconds=settings.SWEEP_INTERVAL_SECONDS,
        default_ttl_seconds=settings.PASTE_TTL_SECONDS,
        clock=clock,
    )

    app = FastAPI(
        title="Pastebin",
        description="Share text blobs that expire on their own",
        version="1.0.0",
    )
    app.state.settings = settings
    app.state.stores = stores
    app.state.service = service
    app.state.sweeper = sweeper

    # Add CORS middleware (optional, for cross-origin requests)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(PasteError)
    async def paste_error_handler(request: Request, exc: PasteError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

    @app.on_event("startup")
    async def startup_event():
        """Startup event handler."""
        logger.info("Pastebin application starting...")

        # Log storage status
        if stores.using_fallback:
            logger.warning("⚠️  STORAGE: Using IN-MEMORY storage (configured backend not available)")
            logger.warning("   Data will NOT persist across server restarts!")

        if settings.SWEEPER_ENABLED:
            sweeper.start()

    @app.on_event("shutdown")
    async def shutdown_event():
        """Shutdown event handler."""
        logger.info("Pastebin application shutting down...")
        sweeper.stop(timeout=5)

    @app.get("/", response_class=HTMLResponse)
    async def root():
        """Serve the create paste HTML page."""
        return pastes.render_page("New paste", INDEX_BODY)

    # Include route modules; the paste router owns the catch-all /{paste_id}
    app.include_router(health.router)
    app.include_router(pastes.router)
    return app


if __name__ == "__main__":
    import uvicorn
    # Stores are built by the factory when the server starts, not on import
    uvicorn.run(
        "pastebin.main:create_app",
        factory=True,
        host="0.0.0.0",
        port=8000,
        reload=default_settings.DEBUG,
    )
