"""
Pydantic schemas for context management.
"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field, ConfigDict


class ContextBase(BaseModel):
    id: str = Field(..., min_length=1, max_length=64, description="Context ID supplied by the application")
    type: str = Field(..., min_length=1, max_length=50, description="Context type, e.g. 'organization' or 'team'")
    name: Optional[str] = Field(None, max_length=255)


class ContextCreate(ContextBase):
    pass


class ContextUpdate(BaseModel):
    type: Optional[str] = Field(None, min_length=1, max_length=50)
    name: Optional[str] = Field(None, min_length=1, max_length=255)


class ContextResponse(ContextBase):
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ContextListResponse(BaseModel):
    items: List[ContextResponse]
    total: int
    limit: int
    offset: int


class ContextUserAdd(BaseModel):
    user_id: str = Field(..., min_length=1, max_length=64)


class ContextMemberResponse(BaseModel):
    user_id: str
    context_id: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
