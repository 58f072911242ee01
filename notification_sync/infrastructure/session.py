"""Authentication/session provider boundary."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


class SessionProvider(Protocol):
    """Supplies the signed-in user and the bearer credential for API calls."""

    @property
    def user_id(self) -> str: ...

    def get_access_token(self) -> str: ...


@dataclass(frozen=True)
class StaticSession:
    """Session whose credentials are fixed for its whole lifetime."""

    user_id: str
    access_token: str

    def get_access_token(self) -> str:
        return self.access_token


__all__ = ["SessionProvider", "StaticSession"]
