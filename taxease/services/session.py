"""The signed-in user as seen by the wizard, uploads and the poller."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


class NotAuthenticatedError(RuntimeError):
    """Raised when an operation needs a signed-in user and there is none."""


@dataclass(slots=True)
class AuthSession:
    user_id: Optional[str] = None
    token: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.user_id)

    def sign_in(self, user_id: str, token: Optional[str] = None) -> None:
        self.user_id = user_id
        self.token = token

    def sign_out(self) -> None:
        self.user_id = None
        self.token = None

    def require_user_id(self) -> str:
        if not self.user_id:
            raise NotAuthenticatedError("User not authenticated")
        return self.user_id

    def require_token(self) -> str:
        if not self.token:
            raise NotAuthenticatedError("Authentication token is missing")
        return self.token


__all__ = ["AuthSession", "NotAuthenticatedError"]
