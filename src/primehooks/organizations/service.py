"""Organization CRUD service."""

import hashlib
import secrets

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from primehooks.assignments.models import AssignmentModel
from primehooks.executions.models import ExecutionRecordModel
from primehooks.organizations.models import OrganizationModel
from primehooks.webhooks.models import WebhookModel


def _hash_api_key(raw_key: str) -> str:
    """SHA-256 hash of a raw API key for storage."""
    return hashlib.sha256(raw_key.encode()).hexdigest()


class OrganizationService:
    """Organization management operations."""

    async def create_organization(
        self,
        session: AsyncSession,
        name: str,
        slug: str,
    ) -> tuple[OrganizationModel, str]:
        """Create an organization and generate its API key. Returns (model, raw_api_key)."""
        raw_api_key = f"phk_{secrets.token_urlsafe(32)}"
        org = OrganizationModel(
            name=name,
            slug=slug,
            api_key_hash=_hash_api_key(raw_api_key),
        )
        session.add(org)
        await session.flush()
        return org, raw_api_key

    async def get_by_id(
        self, session: AsyncSession, organization_id: str
    ) -> OrganizationModel | None:
        return await session.get(OrganizationModel, organization_id)

    async def get_by_slug(
        self, session: AsyncSession, slug: str
    ) -> OrganizationModel | None:
        result = await session.execute(
            select(OrganizationModel).where(OrganizationModel.slug == slug)
        )
        return result.scalar_one_or_none()

    async def list_organizations(self, session: AsyncSession) -> list[OrganizationModel]:
        result = await session.execute(
            select(OrganizationModel).order_by(OrganizationModel.created_at.asc())
        )
        return list(result.scalars().all())

    async def delete_organization(
        self, session: AsyncSession, organization_id: str
    ) -> bool:
        """Delete an organization together with everything it owns."""
        org = await self.get_by_id(session, organization_id)
        if org is None:
            return False
        for model in (ExecutionRecordModel, AssignmentModel, WebhookModel):
            await session.execute(
                delete(model).where(model.organization_id == organization_id)
            )
        await session.delete(org)
        await session.flush()
        return True

    async def resolve_by_raw_key(
        self, session: AsyncSession, raw_api_key: str
    ) -> OrganizationModel | None:
        """Resolve an organization from a raw API key by hashing and looking up."""
        result = await session.execute(
            select(OrganizationModel).where(
                OrganizationModel.api_key_hash == _hash_api_key(raw_api_key)
            )
        )
        return result.scalar_one_or_none()
