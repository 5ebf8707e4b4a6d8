"""Application factory: routes, middleware and error handlers."""

from fastapi import FastAPI

from api.errors import register_error_handlers
from api.middleware import RequestIDMiddleware
from auth.api import create_auth_router
from auth.config import AuthConfig
from auth.security_middleware import AuthMiddleware
from auth.service import AuthService
from auth.session import SessionManager

API_PREFIX = "/api"


def create_app(
    auth_service: AuthService,
    session_manager: SessionManager,
    config: AuthConfig,
) -> FastAPI:
    """Assemble the FastAPI app around already-built services."""
    app = FastAPI(title=f"{config.app_name} auth API")

    app.include_router(create_auth_router(auth_service, config), prefix=API_PREFIX)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    # Starlette runs the last-added middleware first.
    app.add_middleware(
        AuthMiddleware,
        session_manager=session_manager,
        api_prefix=API_PREFIX,
        cookie_name=config.session_cookie_name,
    )
    app.add_middleware(RequestIDMiddleware)

    register_error_handlers(app)
    return app
