"""
Outbound auth mail through the HTTP email gateway.

Every request body is signed with HMAC-SHA256 (``X-Signature``) and
authenticated with ``X-API-Key``. The gateway answers
``{"success": bool, "message": str}``; anything else is a failure.
"""

import hashlib
import hmac
import json
import logging

import requests

logger = logging.getLogger(__name__)

VERIFY_BODY = """Hello {name},

Please click the link below to verify your email address.

{url}

If you did not create an account, no further action is required."""

RESET_BODY = """You are receiving this email because we received a password reset request for your account.

{url}

This password reset link will expire in {minutes} minutes.

If you did not request a password reset, no further action is required."""


class EmailGatewayError(Exception):
    """The gateway could not be reached or refused the message."""


class EmailGatewayClient:
    """Signed JSON client for the mail gateway, sending as the ``auth`` sender."""

    SENDER = "auth"
    TIMEOUT_SECONDS = 10

    def __init__(self, gateway_url: str, api_key: str, hmac_secret: str, app_name: str = "Account"):
        """
        Raises:
            ValueError: If any credential is empty
        """
        for name, value in (("gateway_url", gateway_url), ("api_key", api_key), ("hmac_secret", hmac_secret)):
            if not value:
                raise ValueError(f"{name} is required")

        self.gateway_url = gateway_url
        self.api_key = api_key
        self.hmac_secret = hmac_secret
        self.app_name = app_name

    def _signature(self, body: str) -> str:
        return hmac.new(self.hmac_secret.encode("utf-8"), body.encode("utf-8"), hashlib.sha256).hexdigest()

    def _post(self, payload: dict) -> None:
        """
        Raises:
            EmailGatewayError: Transport failure, non-JSON reply, or a reply
                without success=true.
        """
        body = json.dumps(payload, separators=(",", ":"))
        try:
            response = requests.post(
                self.gateway_url,
                data=body,
                headers={
                    "Content-Type": "application/json",
                    "X-API-Key": self.api_key,
                    "X-Signature": self._signature(body),
                },
                timeout=self.TIMEOUT_SECONDS,
            )
        except (requests.exceptions.RequestException, ConnectionError) as e:
            logger.error(f"Email gateway connection failed: {e}")
            raise EmailGatewayError(f"Connection failed: {e}")

        try:
            reply = response.json()
        except ValueError:
            logger.error(f"Email gateway returned invalid JSON (status {response.status_code})")
            raise EmailGatewayError("Invalid response from gateway")

        if response.status_code != 200 or not reply.get("success"):
            reason = reply.get("message", "Unknown error")
            logger.error(f"Email gateway rejected message: {reason}")
            raise EmailGatewayError(f"Gateway error: {reason}")

    def send_email(self, to: str, subject: str, body: str) -> None:
        """Send one plain text message."""
        self._post({
            "type": "custom",
            "email": to,
            "subject": subject,
            "body": body,
            "sender": self.SENDER,
        })

    def send_verification_email(self, email: str, name: str, verification_url: str) -> None:
        self.send_email(
            email,
            f"{self.app_name}: Verify Email Address",
            VERIFY_BODY.format(name=name, url=verification_url),
        )
        logger.info("Verification email sent")

    def send_password_reset_email(self, email: str, reset_url: str, expires_minutes: int) -> None:
        self.send_email(
            email,
            f"{self.app_name}: Reset Password Notification",
            RESET_BODY.format(url=reset_url, minutes=expires_minutes),
        )
        logger.info("Password reset email sent")
