"""Password strength policy shared by registration, change and reset."""

import re

MIN_LENGTH = 8

_RULES = [
    (lambda p: len(p) >= MIN_LENGTH, f"The password field must be at least {MIN_LENGTH} characters."),
    (
        lambda p: re.search(r"[a-z]", p) and re.search(r"[A-Z]", p),
        "The password field must contain at least one uppercase and one lowercase letter.",
    ),
    (lambda p: re.search(r"\d", p), "The password field must contain at least one number."),
    (lambda p: re.search(r"[^A-Za-z0-9]", p), "The password field must contain at least one symbol."),
]


def password_problems(password: str, confirmation: str | None) -> list[str]:
    """
    Every reason the password is unacceptable; empty list if it passes.

    Letters are ASCII for the case rule; any non-alphanumeric character
    (including non-ASCII) counts as a symbol.
    """
    problems = [message for check, message in _RULES if not check(password)]
    if confirmation is None or confirmation != password:
        problems.append("The password field confirmation does not match.")
    return problems
