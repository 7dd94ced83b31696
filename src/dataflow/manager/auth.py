"""
Caller identity consumed by the audit engine.

Authentication itself happens upstream; the engine only reads the roles of
the already authenticated caller.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class UserRole(str, Enum):
    """Roles known to the manager."""

    PLATFORM_ADMIN = "PLATFORM_ADMIN"
    PLATFORM_OPERATOR = "PLATFORM_OPERATOR"
    TENANT_ADMIN = "TENANT_ADMIN"
    TENANT_OPERATOR = "TENANT_OPERATOR"


class UserInfo(BaseModel):
    """Authenticated caller."""

    model_config = ConfigDict(extra="forbid")

    user_id: str
    username: str | None = None
    tenant: str | None = None
    roles: list[str] = Field(default_factory=list)

    @property
    def is_tenant_admin(self) -> bool:
        """Tenant admins see the broader default audit id set."""
        return UserRole.TENANT_ADMIN.value in self.roles
