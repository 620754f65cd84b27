"""
Pydantic schemas for audit logs.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict


class AuditLogResponse(BaseModel):
    id: str
    actor_id: Optional[str]
    target_user_id: Optional[str]
    action: str
    success: bool
    resource_type: Optional[str]
    resource_id: Optional[str]
    context_id: Optional[str]
    details: Optional[Dict[str, Any]]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AuditLogListResponse(BaseModel):
    """Schema for paginated audit log list."""
    items: List[AuditLogResponse]
    total: int
    limit: int
    offset: int
