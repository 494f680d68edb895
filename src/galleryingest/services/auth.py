"""Administrator guard based on the Cloud IAP identity header."""

import base64
import json
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from ..config import get_admin_emails, get_env, is_development
from ..errors import AuthorizationError
from ..logging_config import get_logger, log_security_event, log_user_action

logger = get_logger(__name__)


@dataclass
class UserInfo:
    """Authenticated caller."""

    user_id: str
    email: str
    name: str | None = None


class AdminGuard:
    """
    Checks that a request comes from a gallery administrator.

    In production the caller is read from the ``X-Goog-IAP-JWT-Assertion``
    header (the load balancer has already verified the signature) and must be
    listed in ADMIN_EMAILS. In development a configured dev user is admitted.
    """

    IAP_HEADER_NAME = "X-Goog-IAP-JWT-Assertion"

    def __init__(self, admin_emails: set[str] | None = None, development_mode: bool | None = None) -> None:
        self.admin_emails = {email.lower() for email in admin_emails} if admin_emails is not None else get_admin_emails()
        self.development_mode = is_development() if development_mode is None else development_mode

    def require_admin(self, headers: Mapping[str, str]) -> UserInfo:
        """
        Resolve the caller and check they are an administrator.

        Raises:
            AuthorizationError: If the caller is missing or not an administrator
        """
        if self.development_mode:
            user = UserInfo(
                user_id=str(get_env("DEV_USER_ID", "dev-user")),
                email=str(get_env("DEV_USER_EMAIL", "dev@example.com")),
                name="Development User",
            )
            log_user_action(user.user_id, "development_admin_access", email=user.email)
            return user

        token = self._header(headers, self.IAP_HEADER_NAME)
        if not token:
            log_security_event("missing_iap_header")
            raise AuthorizationError("Missing IAP assertion header", code="missing_credentials")

        try:
            user = self._decode_jwt_payload(token)
        except ValueError as e:
            raise AuthorizationError(
                f"Invalid IAP assertion: {e}", code="invalid_credentials", original_exception=e
            ) from e

        if user.email.lower() not in self.admin_emails:
            log_security_event("admin_access_denied", user_id=user.user_id, email=user.email)
            raise AuthorizationError(
                f"User {user.email} is not an administrator",
                code="not_admin",
                details={"email": user.email},
            )

        log_user_action(user.user_id, "admin_access_granted", email=user.email)
        return user

    @staticmethod
    def _header(headers: Mapping[str, str], name: str) -> str | None:
        value = headers.get(name)
        if value is None:
            lowered = name.lower()
            value = next((v for k, v in headers.items() if k.lower() == lowered), None)
        return value

    def _decode_jwt_payload(self, jwt_token: str) -> UserInfo:
        """Decode the JWT payload segment to extract user information."""
        parts = jwt_token.split(".")
        if len(parts) != 3:
            raise ValueError("Invalid JWT token format")

        payload_b64 = parts[1]
        padding = 4 - len(payload_b64) % 4
        if padding != 4:
            payload_b64 += "=" * padding

        try:
            payload: dict[str, Any] = json.loads(base64.urlsafe_b64decode(payload_b64).decode("utf-8"))
        except (ValueError, UnicodeDecodeError) as e:
            raise ValueError(f"Failed to decode JWT payload: {e}") from e

        email = payload.get("email")
        sub = payload.get("sub")
        if not email:
            raise ValueError("Email not found in JWT payload")
        if not sub:
            raise ValueError("Subject (user ID) not found in JWT payload")

        # IAP emails look like "accounts.google.com:user@example.com"
        email = str(email).split(":")[-1]
        return UserInfo(user_id=str(sub), email=email, name=payload.get("name"))


def get_admin_guard() -> AdminGuard:
    """Get an admin guard configured from the current environment."""
    return AdminGuard()
