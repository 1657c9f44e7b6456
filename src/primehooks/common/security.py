"""API key authentication dependencies."""

from dataclasses import dataclass

from fastapi import Header, HTTPException


@dataclass
class OrganizationContext:
    """Resolved organization available to request handlers."""
    organization_id: str
    organization_slug: str


async def require_super_admin(
    x_primehooks_api_key: str = Header(..., alias="X-PrimeHooks-Api-Key"),
) -> str:
    """FastAPI dependency that validates the super-admin API key from header."""
    from primehooks.common.config import get_settings

    settings = get_settings()
    if x_primehooks_api_key != settings.super_admin_key:
        raise HTTPException(status_code=403, detail="Invalid super-admin key")
    return x_primehooks_api_key


async def require_organization(
    x_primehooks_api_key: str = Header(..., alias="X-PrimeHooks-Api-Key"),
) -> OrganizationContext:
    """FastAPI dependency that resolves the calling organization from its API key.

    Every webhook and assignment route is organization-scoped; an unknown
    key is rejected instead of falling back to a shared scope.
    """
    from primehooks.deps import get_db, get_organization_service

    svc = get_organization_service()
    db = get_db()
    async with db.get_session() as session:
        org = await svc.resolve_by_raw_key(session, x_primehooks_api_key)
        if org is None:
            raise HTTPException(status_code=403, detail="Invalid organization API key")
        return OrganizationContext(
            organization_id=org.id,
            organization_slug=org.slug,
        )
