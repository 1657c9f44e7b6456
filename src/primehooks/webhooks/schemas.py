"""Pydantic schemas for webhook API endpoints."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from primehooks.health.service import health_of
from primehooks.webhooks.models import WebhookModel

_METHOD_PATTERN = r"^(GET|POST|PUT|PATCH|DELETE|get|post|put|patch|delete)$"


class WebhookCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    endpoint_url: str = Field(..., min_length=1, max_length=2048)
    http_method: str = Field("POST", pattern=_METHOD_PATTERN)
    secret: Optional[str] = Field(None, max_length=255)
    headers: dict[str, str] = {}
    timeout_seconds: Optional[int] = Field(None, ge=1, le=300)
    retry_count: Optional[int] = Field(None, ge=0, le=10)
    rate_limit_per_minute: Optional[int] = Field(None, ge=1)
    description: str = ""
    is_active: bool = True
    created_by: Optional[str] = None


class WebhookUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    endpoint_url: Optional[str] = Field(None, min_length=1, max_length=2048)
    http_method: Optional[str] = Field(None, pattern=_METHOD_PATTERN)
    secret: Optional[str] = Field(None, max_length=255)
    headers: Optional[dict[str, str]] = None
    timeout_seconds: Optional[int] = Field(None, ge=1, le=300)
    retry_count: Optional[int] = Field(None, ge=0, le=10)
    rate_limit_per_minute: Optional[int] = Field(None, ge=1)
    description: Optional[str] = None


class WebhookActiveUpdate(BaseModel):
    is_active: bool


class WebhookResponse(BaseModel):
    id: str
    organization_id: str
    name: str
    description: str
    endpoint_url: str
    http_method: str
    has_secret: bool
    headers: dict[str, str] = {}
    timeout_seconds: int
    retry_count: int
    rate_limit_per_minute: int
    is_active: bool
    health_status: str
    total_executions: int
    successful_executions: int
    failed_executions: int
    average_response_time_ms: int
    last_executed_at: Optional[datetime] = None
    last_test_status: Optional[str] = None
    last_tested_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_model(cls, webhook: WebhookModel) -> "WebhookResponse":
        return cls(
            id=webhook.id,
            organization_id=webhook.organization_id,
            name=webhook.name,
            description=webhook.description or "",
            endpoint_url=webhook.endpoint_url,
            http_method=webhook.http_method,
            has_secret=bool(webhook.secret),
            headers=webhook.headers or {},
            timeout_seconds=webhook.timeout_seconds,
            retry_count=webhook.retry_count,
            rate_limit_per_minute=webhook.rate_limit_per_minute,
            is_active=webhook.is_active,
            health_status=health_of(webhook).value,
            total_executions=webhook.total_executions or 0,
            successful_executions=webhook.successful_executions or 0,
            failed_executions=webhook.failed_executions or 0,
            average_response_time_ms=round(webhook.average_response_time_ms or 0),
            last_executed_at=webhook.last_executed_at,
            last_test_status=webhook.last_test_status,
            last_tested_at=webhook.last_tested_at,
            created_at=webhook.created_at,
            updated_at=webhook.updated_at,
        )


class WebhookTestRequest(BaseModel):
    event_type: Optional[str] = Field(
        None, min_length=1, max_length=100, pattern=r"^[\x20-\x7E]+$",
    )


class BulkActiveRequest(BaseModel):
    webhook_ids: list[str] = Field(..., min_length=1)
    is_active: bool


class BulkDeleteRequest(BaseModel):
    webhook_ids: list[str] = Field(..., min_length=1)
    cascade: bool = False


class WebhookImportRequest(BaseModel):
    # Items are checked one by one so a bad item fails alone.
    webhooks: list[Any] = Field(..., min_length=1)
    overwrite_existing: bool = False


class BulkFailureResponse(BaseModel):
    id: str
    reason: str


class BulkResultResponse(BaseModel):
    succeeded: list[str] = []
    failed: list[BulkFailureResponse] = []

    model_config = {"from_attributes": True}


class HealthReportResponse(BaseModel):
    webhook_id: str
    status: str
    success_rate: Optional[float] = None
    total_executions: int
    successful_executions: int
    failed_executions: int
    average_response_time_ms: int
    last_executed_at: Optional[datetime] = None
    last_test_status: Optional[str] = None
    last_tested_at: Optional[datetime] = None
    last_error_message: Optional[str] = None
    last_error_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ExecutionStatsResponse(BaseModel):
    total: int
    successful: int
    failed: int
    timeouts: int
    success_rate: int
    average_response_time_ms: int

    model_config = {"from_attributes": True}


class RecentErrorResponse(BaseModel):
    webhook_id: str
    webhook_name: str
    event_type: str
    status: str
    error_message: Optional[str] = None
    created_at: datetime


class WebhookStatsResponse(BaseModel):
    total_webhooks: int
    active_webhooks: int
    inactive_webhooks: int
    periods: dict[str, ExecutionStatsResponse]
    recent_errors: list[RecentErrorResponse] = []
