"""
Pydantic schemas for the permission catalog, direct grants and access checks.
"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator

from lattice.core.errors import ValidationError
from lattice.core.scope import Scope, ScopeHint, scope_from_columns
from lattice.core.validation import validate_permission_key


# ============================================================================
# Shared
# ============================================================================

class ScopedRequest(BaseModel):
    """
    Request body carrying an optional grant scope.

    Neither field: global. context_type only: type-wide. context_id only: exact.
    """
    context_id: Optional[str] = Field(None, min_length=1, max_length=64, description="Exact context ID")
    context_type: Optional[str] = Field(None, min_length=1, max_length=50, description="Context type for type-wide scope")

    @model_validator(mode="after")
    def single_scope(self):
        if self.context_id and self.context_type:
            raise ValueError("Provide either context_id or context_type, not both")
        return self

    @property
    def scope(self) -> Scope:
        return scope_from_columns(self.context_id, self.context_type)


def permission_key_validator(v: str) -> str:
    try:
        return validate_permission_key(v)
    except ValidationError as e:
        raise ValueError(e.message) from e


# ============================================================================
# Permission Schemas
# ============================================================================

class PermissionResponse(BaseModel):
    key: str
    label: str
    plugin: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class PermissionLabelUpdate(BaseModel):
    label: str = Field(..., min_length=1, max_length=255)


# ============================================================================
# Direct Grant Schemas
# ============================================================================

class GrantPermissionToUser(ScopedRequest):
    """Schema for granting or revoking a direct permission."""
    user_id: str = Field(..., min_length=1, max_length=64, description="User ID")
    permission_key: str = Field(..., min_length=1, max_length=255, description="Permission key, e.g. 'orders:read'")

    @field_validator("permission_key")
    @classmethod
    def valid_permission_key(cls, v: str) -> str:
        return permission_key_validator(v)


class BulkGrantItem(ScopedRequest):
    permission_key: str = Field(..., min_length=1, max_length=255)

    @field_validator("permission_key")
    @classmethod
    def valid_permission_key(cls, v: str) -> str:
        return permission_key_validator(v)


class BulkGrantToUser(BaseModel):
    """Grant several permissions to one user; stored all together or not at all."""
    user_id: str = Field(..., min_length=1, max_length=64)
    grants: List[BulkGrantItem] = Field(..., min_length=1)


class UserPermissionGrantResponse(BaseModel):
    user_id: str
    permission_key: str
    context_id: Optional[str] = None
    context_type: Optional[str] = None
    created_at: datetime


class EffectivePermissionsResponse(BaseModel):
    """Every permission key a user holds in a context, via direct grants and roles."""
    user_id: str
    context_id: Optional[str] = None
    context_type: Optional[str] = None
    permissions: List[str] = []


# ============================================================================
# Access Check Schemas
# ============================================================================

class PermissionCheckRequest(BaseModel):
    """Schema for checking if a user has a permission."""
    user_id: str = Field(..., min_length=1, max_length=64)
    permission: str = Field(..., min_length=1, max_length=255)
    context_id: Optional[str] = Field(None, description="Context the check runs in")
    context_type: Optional[str] = Field(None, description="Type of the context, or the type for type-wide checks")
    scope: Optional[ScopeHint] = Field(None, description="exact, global or type-wide")


class PermissionCheckResponse(BaseModel):
    allowed: bool
