"""Pydantic schemas for assignment and position endpoints."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field


class AssignmentCreate(BaseModel):
    feature_page: str = Field(..., min_length=1, max_length=100)
    position: str = Field(..., min_length=1, max_length=100)
    webhook_id: str
    button_data: dict[str, Any] = {}
    created_by: Optional[str] = None


class AssignmentResponse(BaseModel):
    id: str
    organization_id: str
    feature_page: str
    position: str
    webhook_id: str
    is_active: bool
    webhook_name: str
    webhook_is_active: bool
    endpoint_url: str
    http_method: str
    available: bool
    button_data: dict[str, Any] = {}
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class PositionLookupResponse(BaseModel):
    configured: bool
    assignment: Optional[AssignmentResponse] = None


class TriggerRequest(BaseModel):
    user_id: Optional[str] = None
    payload: dict[str, Any] = {}
    extra_context: dict[str, Any] = {}
    event_type: str = "click"
