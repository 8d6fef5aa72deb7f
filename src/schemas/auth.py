from typing import Literal

from pydantic import BaseModel, Field


class TokenData(BaseModel):
    sub: str | None = Field(
        default=None,
        description="Subject (client identifier) of the token",
    )
    scopes: list[str] = Field(
        default_factory=list,
        description="Scopes/permissions associated with the token",
    )


class Principal(BaseModel):
    """Authenticated caller of the HTTP surface."""

    kind: Literal["api-key", "jwt"]
    subject: str = Field(..., description="Client id, or a masked API key hint")
    scopes: list[str] = Field(default_factory=list)

    def has_scope(self, scope: str) -> bool:
        return scope in self.scopes
