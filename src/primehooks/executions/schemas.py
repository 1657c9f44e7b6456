"""Pydantic schemas for execution outcomes and history."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel


class ExecutionOutcomeResponse(BaseModel):
    webhook_id: str
    event_type: str
    status: str
    success: bool
    status_code: Optional[int] = None
    response_time_ms: int
    error_message: Optional[str] = None
    response_body: Any = None
    payload_size: int = 0
    is_test: bool = False

    model_config = {"from_attributes": True}


class ExecutionRecordResponse(BaseModel):
    id: str
    webhook_id: str
    organization_id: str
    user_id: Optional[str] = None
    event_type: str
    status: str
    status_code: Optional[int] = None
    response_time_ms: int
    error_message: Optional[str] = None
    payload_size: int
    retry_count: int
    is_test: bool
    request_headers: dict[str, str] = {}
    request_body: dict[str, Any] = {}
    response_body: Any = None
    created_at: datetime

    model_config = {"from_attributes": True}
