"""Turn request payloads into typed models, or field errors for a 422."""

from collections.abc import Mapping
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from auth.exceptions import RequestValidationFailed

ModelT = TypeVar("ModelT", bound=BaseModel)


def _message(field: str, error: dict) -> str:
    label = field.replace("_", " ")
    kind = error["type"]
    if kind == "missing" or (kind == "string_too_short" and error.get("ctx", {}).get("min_length") == 1):
        return f"The {label} field is required."
    if kind == "string_too_long":
        return f"The {label} field must not be greater than {error['ctx']['max_length']} characters."
    if kind == "string_type":
        return f"The {label} field must be a string."
    if kind in ("bool_type", "bool_parsing"):
        return f"The {label} field must be true or false."
    if field == "email":
        return "The email field must be a valid email address."
    return error["msg"]


def field_errors(exc: ValidationError) -> dict[str, list[str]]:
    errors: dict[str, list[str]] = {}
    for error in exc.errors():
        field = str(error["loc"][0]) if error["loc"] else "payload"
        errors.setdefault(field, []).append(_message(field, error))
    return errors


def parse(model: type[ModelT], payload: Any) -> ModelT:
    """
    Validate payload against model.

    Raises:
        RequestValidationFailed: with Laravel-style messages per field.
    """
    if not isinstance(payload, Mapping):
        raise RequestValidationFailed.on("payload", "The request body must be a JSON object.")
    try:
        return model.model_validate(dict(payload))
    except ValidationError as e:
        raise RequestValidationFailed(field_errors(e))
