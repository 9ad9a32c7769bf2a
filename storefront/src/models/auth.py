"""
Authentication models.

Users are managed by an external identity provider. This service only
verifies the bearer JWT it issues and works with the claims below.
"""

from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class TokenPayload(BaseModel):
    """
    JWT claims read from a user token.

    ``sub`` is preferred; tokens carrying a numeric ``id`` claim instead are
    accepted as well.
    """
    sub: Optional[str] = Field(None, description="Subject (user ID)")
    id: Optional[str] = Field(None, description="Legacy user ID claim")
    email: Optional[str] = Field(None, description="Email address")
    username: Optional[str] = Field(None, description="Username")
    roles: List[str] = Field(default_factory=list, description="User roles")
    role: Optional[str] = Field(None, description="Single role claim")
    exp: Optional[int] = Field(None, description="Expiration timestamp (Unix epoch)")
    iat: Optional[int] = Field(None, description="Issued at timestamp (Unix epoch)")

    model_config = {
        "extra": "ignore",
        "json_schema_extra": {
            "example": {
                "sub": "42",
                "email": "jane@example.com",
                "username": "jane",
                "roles": ["authenticated"],
                "exp": 1706270400,
                "iat": 1706266800
            }
        }
    }

    @field_validator("sub", "id", mode="before")
    @classmethod
    def coerce_identifier(cls, v):
        """Identity providers emit numeric ids; keep them as strings."""
        if v is None:
            return v
        return str(v)

    @property
    def user_id(self) -> Optional[str]:
        """Return the subject, falling back to the legacy ``id`` claim."""
        return self.sub or self.id

    @property
    def all_roles(self) -> List[str]:
        """Return roles from both the list and the single-role claim."""
        roles = list(self.roles)
        if self.role and self.role not in roles:
            roles.append(self.role)
        return roles


class CurrentUser(BaseModel):
    """
    Current authenticated user model.

    Used in request handlers to represent the authenticated user
    making the request. Injected via dependency injection.
    """
    id: str = Field(..., description="User ID")
    email: Optional[str] = Field(None, description="Email address")
    username: Optional[str] = Field(None, description="Username")
    roles: List[str] = Field(default_factory=list, description="User roles")

    model_config = {
        "from_attributes": True
    }

    def has_role(self, role: str) -> bool:
        """
        Check if user has a specific role.

        Args:
            role: Role name

        Returns:
            True if user has the role, False otherwise
        """
        return role in self.roles

    @property
    def display_name(self) -> str:
        """Name used on payment customers and invoices."""
        return self.username or self.email or f"user-{self.id}"
