"""Webhook registry API router."""

from dataclasses import asdict
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse, Response, StreamingResponse

from primehooks.common.exceptions import ConflictError, NotFoundError, ValidationError
from primehooks.common.security import OrganizationContext, require_organization
from primehooks.executions.schemas import ExecutionOutcomeResponse, ExecutionRecordResponse
from primehooks.health.service import HealthStatus, health_of
from primehooks.webhooks.schemas import (
    BulkActiveRequest,
    BulkDeleteRequest,
    BulkResultResponse,
    ExecutionStatsResponse,
    HealthReportResponse,
    RecentErrorResponse,
    WebhookActiveUpdate,
    WebhookCreate,
    WebhookImportRequest,
    WebhookResponse,
    WebhookStatsResponse,
    WebhookTestRequest,
    WebhookUpdate,
)
from primehooks.webhooks.transfer import parse_csv, to_csv, to_document

router = APIRouter(prefix="/webhooks")

STATS_WINDOWS = {
    "24h": timedelta(hours=24),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
}


def _get_registry():
    from primehooks.deps import get_webhook_registry
    return get_webhook_registry()


def _get_query_client():
    from primehooks.deps import get_query_client
    return get_query_client()


def _get_execution_log():
    from primehooks.deps import get_execution_log
    return get_execution_log()


def _get_tracker():
    from primehooks.deps import get_health_tracker
    return get_health_tracker()


def _get_db():
    from primehooks.deps import get_db
    return get_db()


@router.post("", response_model=WebhookResponse, status_code=201)
async def create_webhook(
    body: WebhookCreate, org: OrganizationContext = Depends(require_organization),
):
    client = _get_query_client()
    try:
        webhook = await client.create_webhook(org.organization_id, **body.model_dump())
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors)
    return WebhookResponse.from_model(webhook)


@router.get("", response_model=list[WebhookResponse])
async def list_webhooks(
    is_active: Optional[bool] = None,
    search: Optional[str] = None,
    health: Optional[HealthStatus] = None,
    org: OrganizationContext = Depends(require_organization),
):
    registry = _get_registry()
    db = _get_db()
    async with db.get_session() as session:
        webhooks = await registry.list_webhooks(
            session, org.organization_id, is_active=is_active, search=search,
        )
    if health is not None:
        webhooks = [w for w in webhooks if health_of(w) == health]
    return [WebhookResponse.from_model(w) for w in webhooks]


@router.get("/stats", response_model=WebhookStatsResponse)
async def webhook_stats(org: OrganizationContext = Depends(require_organization)):
    registry = _get_registry()
    log = _get_execution_log()
    db = _get_db()
    now = datetime.now(timezone.utc)
    async with db.get_session() as session:
        webhooks = await registry.list_webhooks(session, org.organization_id)
        periods = {}
        for label, window in STATS_WINDOWS.items():
            stats = await log.stats(session, org.organization_id, since=now - window)
            periods[label] = ExecutionStatsResponse.model_validate(stats)
        errors = await log.recent_errors(session, org.organization_id)

    active = sum(1 for w in webhooks if w.is_active)
    return WebhookStatsResponse(
        total_webhooks=len(webhooks),
        active_webhooks=active,
        inactive_webhooks=len(webhooks) - active,
        periods=periods,
        recent_errors=[
            RecentErrorResponse(
                webhook_id=record.webhook_id,
                webhook_name=name,
                event_type=record.event_type,
                status=record.status,
                error_message=record.error_message,
                created_at=record.created_at,
            )
            for record, name in errors
        ],
    )


# ── Bulk ──

@router.post("/bulk/active", response_model=BulkResultResponse)
async def bulk_set_active(
    body: BulkActiveRequest, org: OrganizationContext = Depends(require_organization),
):
    client = _get_query_client()
    result = await client.bulk_set_active(org.organization_id, body.webhook_ids, body.is_active)
    return BulkResultResponse.model_validate(result)


@router.post("/bulk/delete", response_model=BulkResultResponse)
async def bulk_delete(
    body: BulkDeleteRequest, org: OrganizationContext = Depends(require_organization),
):
    client = _get_query_client()
    result = await client.bulk_delete(
        org.organization_id, body.webhook_ids, cascade=body.cascade,
    )
    return BulkResultResponse.model_validate(result)


# ── Import / export ──

@router.get("/export")
async def export_webhooks(
    format: str = Query("json", pattern="^(json|csv)$"),
    include_inactive: bool = True,
    webhook_ids: Optional[list[str]] = Query(None),
    org: OrganizationContext = Depends(require_organization),
):
    registry = _get_registry()
    db = _get_db()
    async with db.get_session() as session:
        definitions = await registry.export_definitions(
            session, org.organization_id,
            include_inactive=include_inactive, webhook_ids=webhook_ids,
        )

    stamp = datetime.now(timezone.utc).strftime("%Y%m%d")
    if format == "csv":
        return StreamingResponse(
            iter([to_csv(definitions)]),
            media_type="text/csv",
            headers={"Content-Disposition": f"attachment; filename=webhooks-{stamp}.csv"},
        )
    return JSONResponse(
        to_document(definitions),
        headers={"Content-Disposition": f"attachment; filename=webhooks-{stamp}.json"},
    )


@router.post("/import", response_model=BulkResultResponse)
async def import_webhooks(
    body: WebhookImportRequest, org: OrganizationContext = Depends(require_organization),
):
    client = _get_query_client()
    result = await client.import_definitions(
        org.organization_id, body.webhooks, overwrite_existing=body.overwrite_existing,
    )
    return BulkResultResponse.model_validate(result)


@router.post("/import/csv", response_model=BulkResultResponse)
async def import_webhooks_csv(
    request: Request,
    overwrite_existing: bool = False,
    org: OrganizationContext = Depends(require_organization),
):
    raw = await request.body()
    try:
        items = parse_csv(raw.decode("utf-8-sig"))
    except UnicodeDecodeError:
        raise HTTPException(status_code=422, detail="CSV body must be UTF-8")
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.message)
    if not items:
        raise HTTPException(status_code=422, detail="CSV body has no rows")
    client = _get_query_client()
    result = await client.import_definitions(
        org.organization_id, items, overwrite_existing=overwrite_existing,
    )
    return BulkResultResponse.model_validate(result)


# ── Single webhook ──

@router.get("/{webhook_id}", response_model=WebhookResponse)
async def get_webhook(webhook_id: str, org: OrganizationContext = Depends(require_organization)):
    registry = _get_registry()
    db = _get_db()
    async with db.get_session() as session:
        webhook = await registry.get(session, webhook_id, org.organization_id)
        if webhook is None:
            raise HTTPException(status_code=404, detail="Webhook not found")
        return WebhookResponse.from_model(webhook)


@router.patch("/{webhook_id}", response_model=WebhookResponse)
async def update_webhook(
    webhook_id: str,
    body: WebhookUpdate,
    org: OrganizationContext = Depends(require_organization),
):
    client = _get_query_client()
    try:
        webhook = await client.update_webhook(
            org.organization_id, webhook_id, **body.model_dump(exclude_unset=True),
        )
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Webhook not found")
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors)
    return WebhookResponse.from_model(webhook)


@router.delete("/{webhook_id}", status_code=204)
async def delete_webhook(
    webhook_id: str,
    cascade: bool = False,
    org: OrganizationContext = Depends(require_organization),
):
    client = _get_query_client()
    try:
        await client.delete_webhook(org.organization_id, webhook_id, cascade=cascade)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Webhook not found")
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=e.message)
    return Response(status_code=204)


@router.put("/{webhook_id}/active", response_model=WebhookResponse)
async def set_webhook_active(
    webhook_id: str,
    body: WebhookActiveUpdate,
    org: OrganizationContext = Depends(require_organization),
):
    client = _get_query_client()
    try:
        webhook = await client.set_active(org.organization_id, webhook_id, body.is_active)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Webhook not found")
    return WebhookResponse.from_model(webhook)


@router.post("/{webhook_id}/test", response_model=ExecutionOutcomeResponse)
async def test_webhook(
    webhook_id: str,
    body: Optional[WebhookTestRequest] = None,
    org: OrganizationContext = Depends(require_organization),
):
    client = _get_query_client()
    event_type = body.event_type if body else None
    try:
        outcome = await client.run_test(org.organization_id, webhook_id, event_type)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Webhook not found")
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.message)
    return ExecutionOutcomeResponse.model_validate(outcome)


@router.get("/{webhook_id}/health", response_model=HealthReportResponse)
async def webhook_health(
    webhook_id: str, org: OrganizationContext = Depends(require_organization),
):
    tracker = _get_tracker()
    db = _get_db()
    try:
        async with db.get_session() as session:
            report = await tracker.get_health(session, org.organization_id, webhook_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Webhook not found")
    data = asdict(report)
    data["status"] = report.status.value
    return HealthReportResponse(**data)


@router.get("/{webhook_id}/executions", response_model=list[ExecutionRecordResponse])
async def list_executions(
    webhook_id: str,
    status: Optional[str] = None,
    is_test: Optional[bool] = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    org: OrganizationContext = Depends(require_organization),
):
    registry = _get_registry()
    log = _get_execution_log()
    db = _get_db()
    async with db.get_session() as session:
        webhook = await registry.get(session, webhook_id, org.organization_id)
        if webhook is None:
            raise HTTPException(status_code=404, detail="Webhook not found")
        records = await log.list_for_webhook(
            session, webhook.id, status=status, is_test=is_test, limit=limit, offset=offset,
        )
        return [ExecutionRecordResponse.model_validate(r) for r in records]
