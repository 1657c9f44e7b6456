"""Assignment and page-position API router."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response

from primehooks.assignments.schemas import (
    AssignmentCreate,
    AssignmentResponse,
    PositionLookupResponse,
    TriggerRequest,
)
from primehooks.common.exceptions import (
    ConflictError,
    NotConfiguredError,
    NotFoundError,
    ValidationError,
)
from primehooks.common.security import OrganizationContext, require_organization
from primehooks.executions.schemas import ExecutionOutcomeResponse

router = APIRouter()


def _get_query_client():
    from primehooks.deps import get_query_client
    return get_query_client()


# ── Assignments ──

@router.get("/assignments", response_model=list[AssignmentResponse])
async def list_assignments(
    page: Optional[str] = None,
    include_inactive: bool = False,
    org: OrganizationContext = Depends(require_organization),
):
    client = _get_query_client()
    views = await client.list_assignments(
        org.organization_id, feature_page=page, include_inactive=include_inactive,
    )
    return [AssignmentResponse.model_validate(v) for v in views]


@router.post("/assignments", response_model=AssignmentResponse, status_code=201)
async def create_assignment(
    body: AssignmentCreate, org: OrganizationContext = Depends(require_organization),
):
    client = _get_query_client()
    try:
        view = await client.assign(
            org.organization_id, body.feature_page, body.position, body.webhook_id,
            button_data=body.button_data, created_by=body.created_by,
        )
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Webhook not found")
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors)
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=e.message)
    return AssignmentResponse.model_validate(view)


@router.delete("/assignments/{assignment_id}", status_code=204)
async def delete_assignment(
    assignment_id: str, org: OrganizationContext = Depends(require_organization),
):
    client = _get_query_client()
    try:
        await client.unassign(org.organization_id, assignment_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Assignment not found")
    return Response(status_code=204)


# ── Positions ──

@router.get("/pages/{page}/positions/{position}", response_model=PositionLookupResponse)
async def get_position(
    page: str, position: str, org: OrganizationContext = Depends(require_organization),
):
    client = _get_query_client()
    view = await client.get_webhook_at(org.organization_id, page, position)
    if view is None:
        return PositionLookupResponse(configured=False)
    return PositionLookupResponse(
        configured=True, assignment=AssignmentResponse.model_validate(view),
    )


@router.post(
    "/pages/{page}/positions/{position}/trigger",
    response_model=ExecutionOutcomeResponse,
)
async def trigger_position(
    page: str,
    position: str,
    body: TriggerRequest,
    org: OrganizationContext = Depends(require_organization),
):
    client = _get_query_client()
    try:
        outcome = await client.trigger_webhook_at(
            org.organization_id,
            body.user_id,
            page,
            position,
            payload=body.payload,
            extra_context=body.extra_context,
            event_type=body.event_type,
        )
    except NotConfiguredError as e:
        raise HTTPException(status_code=404, detail=e.message)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors)
    return ExecutionOutcomeResponse.model_validate(outcome)
