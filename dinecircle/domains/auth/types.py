"""Auth domain type definitions."""

from typing import Literal, Optional

from pydantic import BaseModel, Field


class SupabaseJwtPayload(BaseModel):
    """Claims of a Supabase access token that the API reads."""

    sub: Optional[str] = Field(None, description="Subject (user ID)")
    iss: Optional[str] = Field(None, description="Token issuer")
    aud: Optional[str | list[str]] = Field(None, description="Token audience")
    exp: Optional[int] = Field(None, description="Expiration timestamp")
    iat: Optional[int] = Field(None, description="Issued at timestamp")

    email: Optional[str] = Field(None, description="User email address")
    role: Optional[Literal["authenticated", "anon", "service_role"]] = Field(
        None, description="Postgres role the token maps to"
    )
    session_id: Optional[str] = Field(None, description="Session identifier")
    is_anonymous: Optional[bool] = Field(None, description="Whether user is anonymous")

    model_config = {"extra": "allow"}
