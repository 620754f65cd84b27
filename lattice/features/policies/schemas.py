"""
Pydantic schemas for ABAC policies.
"""
from datetime import datetime
from typing import Literal, Optional
from pydantic import BaseModel, Field, ConfigDict


Effect = Literal["permit", "deny"]


class PolicyBase(BaseModel):
    action: str = Field(..., min_length=1, max_length=255, description="Permission key the policy applies to")
    resource: str = Field(..., min_length=1, max_length=100, description="Resource (context) type")
    condition: str = Field(..., min_length=1, description="CEL expression over user, resource and environment")
    effect: Effect


class PolicyCreate(PolicyBase):
    pass


class PolicyUpdate(BaseModel):
    action: Optional[str] = Field(None, min_length=1, max_length=255)
    resource: Optional[str] = Field(None, min_length=1, max_length=100)
    condition: Optional[str] = Field(None, min_length=1)
    effect: Optional[Effect] = None


class PolicyResponse(PolicyBase):
    id: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
