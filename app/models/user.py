# app/models/user.py
import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class User(SQLModel, table=True):
    """
    Local mirror of an identity issued by the auth provider.

    Identity:
      - id: MUST match the "sub" claim of the bearer token

    Role:
      - "user" | "admin"
      - guests are represented by the absence of a token; they shop
        with a session key instead (see CartOwner).

    Passwords and token issuance live with the auth provider.
    """

    __tablename__ = "users"

    id: uuid.UUID = Field(
        primary_key=True,
        index=True,
        description="Matches the token subject",
    )

    email: str = Field(
        unique=True,
        index=True,
        description="Email from the token",
    )

    name: str = Field(
        max_length=100,
        description="Display name; first part of email by default",
    )

    role: str = Field(
        default="user",
        index=True,
        description="Application role: user | admin",
    )

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"
