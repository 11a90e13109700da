from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from starlette.middleware.sessions import SessionMiddleware
from app.config import Settings, settings
from app.middleware.request_guard import RequestGuardMiddleware
from app.services.guard_service import RequestGuard
from app.web.home_routes import router as home_router
from app.web.protected_routes import router as protected_router
from app.web.vulnerable_routes import router as vulnerable_router
from contextlib import asynccontextmanager

import logging

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler()],
)
logger = logging.getLogger(__name__)


def create_app(app_settings: Settings = settings) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Lifespan event handler for startup and shutdown events"""
        logger.info("[>>] Starting %s...", app_settings.APP_NAME)
        logger.info(
            "[OK] Guarding %s, CSRF exempt: %s",
            app_settings.guarded_prefixes_list,
            app_settings.exempt_paths_list,
        )
        yield
        logger.info("[<<] Shutting down %s...", app_settings.APP_NAME)

    app = FastAPI(
        title=app_settings.APP_NAME,
        description="Vulnerable vs. protected endpoints demonstrating XSS and CSRF mitigations",
        version="1.0.0",
        lifespan=lifespan,
    )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Log every unhandled exception"""
        logger.error(
            "Unhandled exception on %s %s: %s",
            request.method,
            request.url.path,
            str(exc),
            exc_info=True,
        )
        return PlainTextResponse("Internal Server Error.", status_code=500)

    guard = RequestGuard(
        trusted_cdn=app_settings.TRUSTED_CDN,
        exempt_paths=app_settings.exempt_paths_list,
        escaped_fields=app_settings.escaped_query_fields_list,
        form_field=app_settings.CSRF_FORM_FIELD,
        header_name=app_settings.CSRF_HEADER_NAME,
        cookie_name=app_settings.CSRF_COOKIE_NAME,
    )

    # Request guard (needs the session, so it is added before SessionMiddleware
    # and therefore runs after it)
    app.add_middleware(
        RequestGuardMiddleware,
        guard=guard,
        guarded_prefixes=app_settings.guarded_prefixes_list,
    )

    # Cookie-backed session holding the CSRF token
    app.add_middleware(
        SessionMiddleware,
        secret_key=app_settings.SESSION_SECRET,
        session_cookie=app_settings.SESSION_COOKIE_NAME,
        max_age=app_settings.SESSION_MAX_AGE,
        same_site="lax",
        https_only=not app_settings.DEBUG,
    )

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.allowed_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH"],
        allow_headers=["Content-Type", app_settings.CSRF_HEADER_NAME],
    )

    # Health check endpoint (API only)
    @app.get("/api/health")
    async def health_check():
        return {"status": "ok"}

    app.include_router(home_router)
    app.include_router(vulnerable_router)
    app.include_router(protected_router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        app,
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
    )
