"""FastAPI application entry point."""
from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request

from pethunt.config import get_settings
from pethunt.middleware.error_handler import setup_error_handlers

settings = get_settings()

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger("pethunt")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events - startup and shutdown."""
    # Startup: static config first, so malformed data stops the process
    from pethunt.services.config_loader import load_game_config
    config = load_game_config(settings.GAME_CONFIG_DIR or None)
    logger.info("Game config ready: %d regions", len(config.regions))

    from pethunt.database.engine import init_db
    await init_db()
    logger.info("Database initialized")

    yield  # Application runs here

    # Shutdown: Close database connections
    from pethunt.database.engine import close_db
    await close_db()
    logger.info("Database connections closed")


app = FastAPI(
    title="Pet Hunt",
    description="Hunting sessions and pet progression for a pet collection game",
    version="0.1.0",
    lifespan=lifespan,
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    response = await call_next(request)
    logger.debug("%s %s -> %s", request.method, request.url.path, response.status_code)
    return response


setup_error_handlers(app, debug=settings.DEBUG)


@app.get("/")
async def root():
    return {"status": "online", "service": "pethunt", "version": "0.1.0"}


@app.get("/health")
async def health_check():
    """Detailed health check."""
    return {
        "status": "healthy",
        "debug_mode": settings.DEBUG,
    }


# Routes
from pethunt.api.routes import accounts, hunt, pets, regions  # noqa: E402
app.include_router(accounts.router, prefix="/api/accounts", tags=["accounts"])
app.include_router(regions.router, prefix="/api/regions", tags=["regions"])
app.include_router(hunt.router, prefix="/api/hunt", tags=["hunt"])
app.include_router(pets.router, prefix="/api/pets", tags=["pets"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("pethunt.main:app", host=settings.HOST, port=settings.PORT, reload=settings.DEBUG)
