from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class AuthToken(BaseModel):
    """Session cookie returned by a successful login."""

    model_config = ConfigDict(frozen=True)

    name: str = "user"
    value: str

    def cookie_header(self) -> str:
        return f"{self.name}={self.value}"
