"""Propagate the authenticated account through the call stack using contextvars."""

from contextlib import contextmanager
from contextvars import ContextVar
from uuid import UUID

_current_account_id: ContextVar[UUID | None] = ContextVar("current_account_id", default=None)


def get_current_account_id() -> UUID:
    """
    Get the authenticated account ID from context.

    Raises RuntimeError if no account context is set. Reaching account-scoped
    code outside of an authenticated request is a bug, not a 401.
    """
    account_id = _current_account_id.get()
    if account_id is None:
        raise RuntimeError(
            "No account context set. This usually means account-scoped code "
            "ran outside of an authenticated request."
        )
    return account_id


def set_current_account_id(account_id: UUID) -> None:
    """Set the account ID in context. Called by AuthMiddleware."""
    _current_account_id.set(account_id)


def clear_current_account_id() -> None:
    """
    Clear account context.

    Must be called in a finally block to prevent context leakage between requests.
    """
    _current_account_id.set(None)


@contextmanager
def account_context(account_id: UUID):
    """
    Temporarily act as an account (tests, maintenance scripts).

    Example:
        with account_context(user.id):
            profile = auth_service.current_user(get_current_account_id())
    """
    previous = _current_account_id.get()
    set_current_account_id(account_id)
    try:
        yield
    finally:
        if previous is None:
            clear_current_account_id()
        else:
            set_current_account_id(previous)
