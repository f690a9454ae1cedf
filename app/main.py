from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from typing import Optional
import logging
from .config import settings
from .database import create_database
from .dependencies import Services, build_services
from .errors import AppError
from .middleware import logging_middleware
from .routers import categories, debts, notes, notifications


# Setup basic logging
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format='%(asctime)s %(levelname)s %(name)s %(message)s',
)

logger = logging.getLogger(__name__)


def create_app(services: Optional[Services] = None) -> FastAPI:
    """Build the API. Tests pass prebuilt services; otherwise they are created on startup."""
    app = FastAPI(title=settings.PROJECT_NAME)
    app.state.services = services

    # Mobile clients and the web dashboard call from arbitrary origins; restrict
    # with CORS_ORIGINS in production.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.middleware("http")(logging_middleware)

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        if exc.status_code >= 500:
            logger.error(f"❌ {request.method} {request.url.path}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content={"ok": False, "message": exc.message})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(f"❌ Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(status_code=500, content={"ok": False, "message": str(exc) or "Internal server error"})

    app.include_router(notifications.router, prefix="/notifications", tags=["Notifications"])
    app.include_router(categories.router, prefix="/categories", tags=["Categories"])
    app.include_router(notes.router, prefix="/notes", tags=["Notes"])
    app.include_router(debts.router, prefix="/debts", tags=["Debts"])

    @app.get("/")
    def root():
        return {"ok": True, "message": f"{settings.PROJECT_NAME} running"}

    @app.on_event("startup")
    async def open_services():
        if app.state.services is not None:
            return
        db = create_database(settings)
        await db.connect()
        app.state.services = build_services(db, settings)
        logger.info(f"🚀 {settings.PROJECT_NAME} started ({type(db).__name__})")

    @app.on_event("shutdown")
    async def close_services():
        if app.state.services is not None:
            await app.state.services.close()

    return app


app = create_app()
