"""Utility modules for cross-cutting concerns."""

from utils.timezone import Clock, now_utc, to_utc, parse_iso, to_unix
from utils.user_context import (
    get_current_account_id,
    set_current_account_id,
    clear_current_account_id,
    account_context,
)
