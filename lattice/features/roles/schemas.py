"""
Pydantic schemas for role management.
"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator

from lattice.features.permissions.schemas import ScopedRequest, permission_key_validator


# ============================================================================
# Role Schemas
# ============================================================================

class RoleBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, description="Display name")
    context_type: str = Field(..., min_length=1, max_length=50, description="Context type the role applies to")


class RoleCreate(RoleBase):
    """Schema for creating a role. The key is generated when omitted."""
    key: Optional[str] = Field(None, min_length=1, max_length=100, description="Unique role key")

    @field_validator("key")
    @classmethod
    def key_format(cls, v: Optional[str]) -> Optional[str]:
        """Validate role key format."""
        if v is not None and not v.replace("_", "").replace("-", "").replace(":", "").isalnum():
            raise ValueError("Role key must contain only alphanumeric characters, underscores, hyphens and colons")
        return v


class RoleResponse(RoleBase):
    id: str
    key: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# Assignment Schemas
# ============================================================================

class AssignRoleToUser(ScopedRequest):
    """Schema for assigning a role to a user (global, type-wide or exact)."""
    user_id: str = Field(..., min_length=1, max_length=64, description="User ID")


class AssignPermissionToRole(ScopedRequest):
    """Schema for granting a permission to a role."""
    permission_key: str = Field(..., min_length=1, max_length=255, description="Permission key")

    @field_validator("permission_key")
    @classmethod
    def valid_permission_key(cls, v: str) -> str:
        return permission_key_validator(v)


class UserRoleResponse(BaseModel):
    key: str
    name: str
    context_id: Optional[str] = None
    context_type: Optional[str] = None


class RolePermissionResponse(BaseModel):
    permission_key: str
    context_id: Optional[str] = None
    context_type: Optional[str] = None


class RoleWithPermissions(RoleResponse):
    permissions: List[RolePermissionResponse] = []
