"""HTTP routes for authentication.

Handlers are plain ``def`` so bcrypt and store I/O run in the threadpool.
Failures propagate as domain exceptions and are rendered by
api/errors.py.
"""

import ipaddress
from typing import Any

from fastapi import APIRouter, Body, Query, Request

from api.base import Messages, message_response
from auth.config import AuthConfig
from auth.service import AuthService
from utils.user_context import get_current_account_id


def _get_client_ip(request: Request) -> str | None:
    """Extract valid IP address from request, or None if invalid."""
    if not request.client:
        return None
    host = request.client.host
    try:
        ipaddress.ip_address(host)
        return host
    except ValueError:
        return None


def _payload(body: Any) -> Any:
    """An absent body validates like an empty object, so every field reports 'required'."""
    return {} if body is None else body


def create_auth_router(auth_service: AuthService, config: AuthConfig) -> APIRouter:
    """Create auth router with injected service."""
    router = APIRouter(tags=["auth"])
    cookie_name = config.session_cookie_name

    @router.post("/register", status_code=201)
    def register(request: Request, body: Any = Body(None)):
        """Create an account and send the verification link."""
        user = auth_service.register(_payload(body), _get_client_ip(request))
        return message_response(Messages.REGISTERED, status_code=201, user=user.summary())

    @router.post("/login")
    def login(request: Request, body: Any = Body(None)):
        """Verify credentials and set the session cookie.

        Any session cookie the client already holds is retired.
        """
        result = auth_service.login(
            _payload(body),
            _get_client_ip(request),
            previous_session=request.cookies.get(cookie_name),
        )

        response = message_response(Messages.LOGGED_IN, user=result.user.summary())
        max_age = None
        if result.session.remember:
            max_age = int((result.session.expires_at - result.session.created_at).total_seconds())
        response.set_cookie(
            key=cookie_name,
            value=result.session.token,
            httponly=True,
            secure=config.session_cookie_secure,
            samesite="lax",
            max_age=max_age,
        )
        return response

    @router.post("/logout")
    def logout(request: Request):
        """Destroy the session and clear the cookie."""
        auth_service.logout(request.state.session.token)
        response = message_response(Messages.LOGGED_OUT)
        response.delete_cookie(key=cookie_name)
        return response

    @router.get("/user")
    def current_user():
        """Full profile of the authenticated account."""
        return auth_service.current_user(get_current_account_id()).profile()

    @router.put("/user/profile")
    def update_profile(body: Any = Body(None)):
        user = auth_service.update_profile(get_current_account_id(), _payload(body))
        return message_response(Messages.PROFILE_UPDATED, user=user.summary())

    @router.put("/user/password")
    def change_password(body: Any = Body(None)):
        auth_service.change_password(get_current_account_id(), _payload(body))
        return message_response(Messages.PASSWORD_CHANGED)

    @router.post("/forgot-password")
    def forgot_password(request: Request, body: Any = Body(None)):
        """Same response whether or not the email is registered."""
        auth_service.forgot_password(_payload(body), _get_client_ip(request))
        return message_response(Messages.RESET_LINK_SENT)

    @router.post("/reset-password")
    def reset_password(request: Request, body: Any = Body(None)):
        auth_service.reset_password(_payload(body), _get_client_ip(request))
        return message_response(Messages.PASSWORD_RESET)

    @router.get("/email/verify/{account_id}/{hashed_email}")
    def verify_email(
        account_id: str,
        hashed_email: str,
        expires: str | None = Query(None),
        signature: str | None = Query(None),
    ):
        """Signed link target. Every failure is the same 403."""
        auth_service.verify_email(account_id, hashed_email, expires, signature)
        return message_response(Messages.EMAIL_VERIFIED)

    @router.post("/email/verification-notification")
    def resend_verification(request: Request):
        sent = auth_service.resend_verification(get_current_account_id(), _get_client_ip(request))
        return message_response(Messages.VERIFICATION_SENT if sent else Messages.ALREADY_VERIFIED)

    return router
