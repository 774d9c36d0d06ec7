from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

from pydantic import BaseModel


@dataclass
class AdminSession:
    """Authenticated admin, valid until ``expires_at``."""

    token: str
    user_id: int | str
    created_at: datetime
    expires_at: datetime

    @classmethod
    def start(cls, token: str, user_id: int | str, ttl: timedelta) -> "AdminSession":
        now = datetime.now(UTC)
        return cls(token=token, user_id=user_id, created_at=now, expires_at=now + ttl)

    def is_expired(self, now: datetime | None = None) -> bool:
        return (now or datetime.now(UTC)) >= self.expires_at

    def as_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "created_at": self.created_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
        }


class LoginRequest(BaseModel):
    identifier: str
    password: str


class LoginResponse(BaseModel):
    token: str
    user_id: int | str
    expires_at: str
