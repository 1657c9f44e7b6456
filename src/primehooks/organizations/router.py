"""Organization API router; requires super-admin authentication."""

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response
from sqlalchemy.exc import IntegrityError

from primehooks.common.security import require_super_admin
from primehooks.organizations.schemas import (
    OrganizationCreate,
    OrganizationCreateResponse,
    OrganizationResponse,
)

router = APIRouter(prefix="/organizations", tags=["organizations"])


def _get_service():
    from primehooks.deps import get_organization_service
    return get_organization_service()


def _get_db():
    from primehooks.deps import get_db
    return get_db()


@router.post("", response_model=OrganizationCreateResponse, status_code=201)
async def create_organization(body: OrganizationCreate, _=Depends(require_super_admin)):
    svc = _get_service()
    db = _get_db()
    try:
        async with db.get_session() as session:
            if await svc.get_by_slug(session, body.slug) is not None:
                raise HTTPException(status_code=409, detail="Slug already in use")
            org, raw_key = await svc.create_organization(
                session, name=body.name, slug=body.slug,
            )
    except IntegrityError:
        raise HTTPException(status_code=409, detail="Slug already in use")
    return OrganizationCreateResponse(
        id=org.id,
        name=org.name,
        slug=org.slug,
        created_at=org.created_at,
        api_key=raw_key,
    )


@router.get("", response_model=list[OrganizationResponse])
async def list_organizations(_=Depends(require_super_admin)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        orgs = await svc.list_organizations(session)
        return [OrganizationResponse.model_validate(o) for o in orgs]


@router.get("/{organization_id}", response_model=OrganizationResponse)
async def get_organization(organization_id: str, _=Depends(require_super_admin)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        org = await svc.get_by_id(session, organization_id)
        if org is None:
            raise HTTPException(status_code=404, detail="Organization not found")
        return OrganizationResponse.model_validate(org)


@router.delete("/{organization_id}", status_code=204)
async def delete_organization(organization_id: str, _=Depends(require_super_admin)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        deleted = await svc.delete_organization(session, organization_id)
        if not deleted:
            raise HTTPException(status_code=404, detail="Organization not found")
    from primehooks.deps import get_query_cache
    get_query_cache().invalidate(organization_id)
    return Response(status_code=204)
