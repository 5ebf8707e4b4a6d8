"""HTTP plumbing shared by the auth routes."""

from api.base import (
    MessageBody,
    ValidationErrorBody,
    Messages,
    message_response,
    error_response,
    validation_error_response,
)
