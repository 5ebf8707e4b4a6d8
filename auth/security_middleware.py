"""Session cookie gate in front of the account-scoped API routes."""

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from api.base import Messages, error_response
from auth.exceptions import SessionExpiredError
from auth.session import SessionManager
from utils.user_context import set_current_account_id, clear_current_account_id


class AuthMiddleware(BaseHTTPMiddleware):
    """
    Resolve the session cookie to an account before the route runs.

    Guest routes (register, login, password reset, the signed verify link)
    and the service paths pass straight through. Anything else without a
    live session gets the generic 401; a live session has its expiry slid
    forward and its account bound to ``request.state`` and the account
    context for the duration of the request.
    """

    PUBLIC_ROUTES = [
        "/register",
        "/login",
        "/forgot-password",
        "/reset-password",
        "/email/verify/",
    ]
    PUBLIC_PATHS = [
        "/health",
        "/docs",
        "/openapi.json",
    ]

    def __init__(
        self,
        app,
        session_manager: SessionManager,
        api_prefix: str = "/api",
        cookie_name: str = "session_token",
    ):
        super().__init__(app)
        self._session_manager = session_manager
        self._cookie_name = cookie_name
        self._public = [f"{api_prefix}{route}" for route in self.PUBLIC_ROUTES] + self.PUBLIC_PATHS

    def _is_public_path(self, path: str) -> bool:
        """Exact match, or prefix match for entries ending in '/'."""
        for public_path in self._public:
            if path == public_path or (public_path.endswith("/") and path.startswith(public_path)):
                return True
        return False

    async def dispatch(self, request: Request, call_next):
        if self._is_public_path(request.url.path):
            return await call_next(request)

        session_token = request.cookies.get(self._cookie_name)
        if not session_token:
            return error_response(401, Messages.UNAUTHENTICATED)

        try:
            session = self._session_manager.validate_session(session_token)
        except SessionExpiredError:
            return error_response(401, Messages.UNAUTHENTICATED)

        set_current_account_id(session.user_id)
        request.state.user_id = session.user_id
        request.state.session = session

        try:
            return await call_next(request)
        finally:
            clear_current_account_id()
