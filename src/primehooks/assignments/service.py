"""Assignment map: which webhook answers a given (organization, page, position)."""

import logging
from typing import Any, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from primehooks.assignments.models import AssignmentModel
from primehooks.common.exceptions import ConflictError, NotFoundError, ValidationError
from primehooks.webhooks.models import WebhookModel

logger = logging.getLogger(__name__)


def _require_organization(organization_id: str | None) -> str:
    if not organization_id:
        raise ValidationError("organization_id is required")
    return organization_id


class AssignmentMap:
    """Binds webhooks to UI trigger points within an organization."""

    # ── Read ──

    async def get_active_assignments(
        self, session: AsyncSession, organization_id: str,
    ) -> list[AssignmentModel]:
        """Assignments whose own active flag is set; webhook state is not consulted."""
        return await self.list_assignments(session, organization_id)

    async def list_assignments(
        self,
        session: AsyncSession,
        organization_id: str,
        feature_page: str | None = None,
        include_inactive: bool = False,
    ) -> list[AssignmentModel]:
        _require_organization(organization_id)
        query = select(AssignmentModel).where(
            AssignmentModel.organization_id == organization_id,
        )
        if feature_page is not None:
            query = query.where(AssignmentModel.feature_page == feature_page)
        if not include_inactive:
            query = query.where(AssignmentModel.is_active.is_(True))
        query = query.order_by(AssignmentModel.created_at.asc(), AssignmentModel.id.asc())
        result = await session.execute(query)
        return list(result.scalars().all())

    async def list_with_webhooks(
        self,
        session: AsyncSession,
        organization_id: str,
        feature_page: str | None = None,
        include_inactive: bool = False,
    ) -> list[tuple[AssignmentModel, WebhookModel]]:
        """Assignments joined with the webhook each one references."""
        _require_organization(organization_id)
        query = (
            select(AssignmentModel, WebhookModel)
            .join(WebhookModel, WebhookModel.id == AssignmentModel.webhook_id)
            .where(AssignmentModel.organization_id == organization_id)
        )
        if feature_page is not None:
            query = query.where(AssignmentModel.feature_page == feature_page)
        if not include_inactive:
            query = query.where(AssignmentModel.is_active.is_(True))
        query = query.order_by(AssignmentModel.created_at.asc(), AssignmentModel.id.asc())
        result = await session.execute(query)
        return [(row[0], row[1]) for row in result.all()]

    async def get_by_id(
        self, session: AsyncSession, organization_id: str, assignment_id: str,
    ) -> Optional[AssignmentModel]:
        _require_organization(organization_id)
        result = await session.execute(
            select(AssignmentModel).where(
                AssignmentModel.id == assignment_id,
                AssignmentModel.organization_id == organization_id,
            )
        )
        return result.scalar_one_or_none()

    async def get_assignment(
        self,
        session: AsyncSession,
        organization_id: str,
        feature_page: str,
        position: str,
    ) -> Optional[AssignmentModel]:
        """First active assignment for the triple, by creation order."""
        _require_organization(organization_id)
        result = await session.execute(
            select(AssignmentModel)
            .where(
                AssignmentModel.organization_id == organization_id,
                AssignmentModel.feature_page == feature_page,
                AssignmentModel.position == position,
                AssignmentModel.is_active.is_(True),
            )
            .order_by(AssignmentModel.created_at.asc(), AssignmentModel.id.asc())
        )
        matches = list(result.scalars().all())
        if not matches:
            return None
        if len(matches) > 1:
            logger.warning(
                "Data integrity: %d active assignments for %s/%s/%s; using %s",
                len(matches), organization_id, feature_page, position, matches[0].id,
            )
        return matches[0]

    async def resolve(
        self,
        session: AsyncSession,
        organization_id: str,
        feature_page: str,
        position: str,
    ) -> Optional[tuple[AssignmentModel, WebhookModel]]:
        """Return (assignment, webhook) only when both are active."""
        assignment = await self.get_assignment(session, organization_id, feature_page, position)
        if assignment is None:
            return None
        webhook = await session.get(WebhookModel, assignment.webhook_id)
        if webhook is None or not webhook.is_active:
            return None
        return assignment, webhook

    # ── Write ──

    async def assign(
        self,
        session: AsyncSession,
        organization_id: str,
        feature_page: str,
        position: str,
        webhook_id: str,
        button_data: dict[str, Any] | None = None,
        created_by: str | None = None,
    ) -> AssignmentModel:
        """Bind a webhook to a position, replacing any active binding.

        The deactivate and the insert share the caller's transaction; a
        concurrent assign that wins the unique index surfaces as ConflictError.
        """
        _require_organization(organization_id)
        if not feature_page or not position:
            raise ValidationError("feature_page and position are required")

        webhook = await session.scalar(
            select(WebhookModel).where(
                WebhookModel.id == webhook_id,
                WebhookModel.organization_id == organization_id,
            )
        )
        if webhook is None:
            raise NotFoundError(f"Webhook {webhook_id} not found")

        await session.execute(
            update(AssignmentModel)
            .where(
                AssignmentModel.organization_id == organization_id,
                AssignmentModel.feature_page == feature_page,
                AssignmentModel.position == position,
                AssignmentModel.is_active.is_(True),
            )
            .values(is_active=False)
            .execution_options(synchronize_session="fetch")
        )

        assignment = AssignmentModel(
            organization_id=organization_id,
            feature_page=feature_page,
            position=position,
            webhook_id=webhook_id,
            button_data=button_data or {},
            created_by=created_by,
            is_active=True,
        )
        session.add(assignment)
        try:
            await session.flush()
        except IntegrityError as exc:
            raise ConflictError(
                f"Another active assignment was created for {feature_page}/{position}"
            ) from exc
        logger.info(
            "Assigned webhook %s to %s/%s in organization %s",
            webhook_id, feature_page, position, organization_id,
        )
        return assignment

    async def unassign(
        self, session: AsyncSession, organization_id: str, assignment_id: str,
    ) -> AssignmentModel:
        assignment = await self.get_by_id(session, organization_id, assignment_id)
        if assignment is None:
            raise NotFoundError(f"Assignment {assignment_id} not found")
        if assignment.is_active:
            assignment.is_active = False
            await session.flush()
        return assignment
