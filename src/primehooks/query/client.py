"""Client query layer: cached position lookups, triggers and cache-invalidating mutations.

This is the surface UI callers use: ``has_webhook_at`` / ``get_webhook_at``
answer from a short-lived cache, ``trigger_webhook_at`` always resolves
against the database, and every mutation drops the organization's cached
pages.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from primehooks.assignments.models import AssignmentModel
from primehooks.assignments.service import AssignmentMap
from primehooks.common.database import DatabaseManager
from primehooks.common.exceptions import (
    ConflictError,
    NotConfiguredError,
    PrimeHooksError,
    ValidationError,
)
from primehooks.executions.engine import ExecutionOutcome, TriggerContext, TriggerEngine, WebhookTarget
from primehooks.health.service import HealthTracker
from primehooks.query.cache import QueryCache
from primehooks.webhooks.models import WebhookModel
from primehooks.webhooks.service import WebhookRegistry
from primehooks.webhooks.transfer import coerce_definition

logger = logging.getLogger(__name__)

VALID_TRIGGER_EVENTS: frozenset[str] = frozenset({"click", "submit", "trigger"})
DEFAULT_TRIGGER_EVENT = "click"


@dataclass(frozen=True)
class AssignmentView:
    """An assignment enriched with the display fields of its webhook."""

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
    button_data: dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None

    @property
    def available(self) -> bool:
        return self.is_active and self.webhook_is_active

    @classmethod
    def from_models(cls, assignment: AssignmentModel, webhook: WebhookModel) -> "AssignmentView":
        return cls(
            id=assignment.id,
            organization_id=assignment.organization_id,
            feature_page=assignment.feature_page,
            position=assignment.position,
            webhook_id=webhook.id,
            is_active=assignment.is_active,
            webhook_name=webhook.name,
            webhook_is_active=webhook.is_active,
            endpoint_url=webhook.endpoint_url,
            http_method=webhook.http_method,
            button_data=dict(assignment.button_data or {}),
            created_at=assignment.created_at,
        )


@dataclass
class BulkFailure:
    id: str
    reason: str


@dataclass
class BulkResult:
    succeeded: list[str] = field(default_factory=list)
    failed: list[BulkFailure] = field(default_factory=list)


class WebhookQueryClient:
    """Facade over the registry, assignment map, engine and tracker."""

    def __init__(
        self,
        db: DatabaseManager,
        cache: QueryCache,
        registry: WebhookRegistry,
        assignments: AssignmentMap,
        engine: TriggerEngine,
        tracker: HealthTracker,
    ):
        self.db = db
        self.cache = cache
        self.registry = registry
        self.assignments = assignments
        self.engine = engine
        self.tracker = tracker

    # ── Position lookups ──

    async def _page_views(self, organization_id: str, feature_page: str) -> list[AssignmentView]:
        cached = self.cache.get(organization_id, feature_page)
        if cached is not None:
            return cached
        async with self.db.get_session() as session:
            rows = await self.assignments.list_with_webhooks(
                session, organization_id, feature_page=feature_page,
            )
        views = [AssignmentView.from_models(a, w) for a, w in rows]
        self.cache.set(organization_id, feature_page, views)
        return views

    async def get_webhook_at(
        self, organization_id: str, feature_page: str, position: str,
    ) -> Optional[AssignmentView]:
        """The usable assignment at a position, or None. May be up to one TTL stale."""
        for view in await self._page_views(organization_id, feature_page):
            if view.position == position:
                return view if view.available else None
        return None

    async def has_webhook_at(
        self, organization_id: str, feature_page: str, position: str,
    ) -> bool:
        return await self.get_webhook_at(organization_id, feature_page, position) is not None

    async def list_assignments(
        self,
        organization_id: str,
        feature_page: str | None = None,
        include_inactive: bool = False,
    ) -> list[AssignmentView]:
        if feature_page is not None and not include_inactive:
            return list(await self._page_views(organization_id, feature_page))
        async with self.db.get_session() as session:
            rows = await self.assignments.list_with_webhooks(
                session, organization_id,
                feature_page=feature_page, include_inactive=include_inactive,
            )
        return [AssignmentView.from_models(a, w) for a, w in rows]

    # ── Invocation ──

    async def trigger_webhook_at(
        self,
        organization_id: str,
        user_id: str | None,
        feature_page: str,
        position: str,
        payload: dict[str, Any] | None = None,
        extra_context: dict[str, Any] | None = None,
        event_type: str = DEFAULT_TRIGGER_EVENT,
    ) -> ExecutionOutcome:
        """Trigger the webhook at a position.

        Raises NotConfiguredError when no active assignment with an active
        webhook exists; nothing is sent or recorded in that case.
        """
        if event_type not in VALID_TRIGGER_EVENTS:
            raise ValidationError(
                f"Invalid event type: {event_type}. Valid types: {sorted(VALID_TRIGGER_EVENTS)}"
            )
        async with self.db.get_session() as session:
            resolved = await self.assignments.resolve(
                session, organization_id, feature_page, position,
            )
            if resolved is None:
                raise NotConfiguredError(
                    f"No webhook configured for {feature_page}/{position}"
                )
            target = WebhookTarget.from_model(resolved[1])

        context = TriggerContext(
            organization_id=organization_id,
            feature_page=feature_page,
            position=position,
            user_id=user_id,
            extra=dict(extra_context or {}),
        )
        return await self.engine.execute(
            target, payload or {}, event_type, is_test=False, context=context,
        )

    async def run_test(
        self, organization_id: str, webhook_id: str, event_type: str | None = None,
    ) -> ExecutionOutcome:
        if event_type:
            return await self.tracker.run_test(organization_id, webhook_id, event_type)
        return await self.tracker.run_test(organization_id, webhook_id)

    # ── Mutations ──

    async def assign(
        self,
        organization_id: str,
        feature_page: str,
        position: str,
        webhook_id: str,
        button_data: dict[str, Any] | None = None,
        created_by: str | None = None,
    ) -> AssignmentView:
        async with self.db.get_session() as session:
            assignment = await self.assignments.assign(
                session, organization_id, feature_page, position, webhook_id,
                button_data=button_data, created_by=created_by,
            )
            webhook = await session.get(WebhookModel, webhook_id)
            view = AssignmentView.from_models(assignment, webhook)
        self.cache.invalidate(organization_id, feature_page)
        return view

    async def unassign(self, organization_id: str, assignment_id: str) -> AssignmentView:
        async with self.db.get_session() as session:
            assignment = await self.assignments.unassign(session, organization_id, assignment_id)
            webhook = await session.get(WebhookModel, assignment.webhook_id)
            view = AssignmentView.from_models(assignment, webhook)
        self.cache.invalidate(organization_id, assignment.feature_page)
        return view

    async def create_webhook(self, organization_id: str, **fields: Any) -> WebhookModel:
        async with self.db.get_session() as session:
            webhook = await self.registry.create(session, organization_id, **fields)
        return webhook

    async def update_webhook(
        self, organization_id: str, webhook_id: str, **fields: Any,
    ) -> WebhookModel:
        async with self.db.get_session() as session:
            webhook = await self.registry.update(session, webhook_id, organization_id, **fields)
        self.cache.invalidate(organization_id)
        return webhook

    async def delete_webhook(
        self, organization_id: str, webhook_id: str, cascade: bool = False,
    ) -> None:
        async with self.db.get_session() as session:
            await self.registry.delete(session, webhook_id, organization_id, cascade=cascade)
        self.cache.invalidate(organization_id)

    async def set_active(
        self, organization_id: str, webhook_id: str, active: bool,
    ) -> WebhookModel:
        async with self.db.get_session() as session:
            webhook = await self.registry.set_active(session, webhook_id, organization_id, active)
        self.cache.invalidate(organization_id)
        return webhook

    # ── Bulk ──

    async def bulk_set_active(
        self, organization_id: str, webhook_ids: list[str], active: bool,
    ) -> BulkResult:
        """Toggle each webhook in its own transaction; failures do not undo earlier items."""
        result = BulkResult()
        for webhook_id in webhook_ids:
            try:
                async with self.db.get_session() as session:
                    await self.registry.set_active(session, webhook_id, organization_id, active)
            except PrimeHooksError as exc:
                result.failed.append(BulkFailure(id=webhook_id, reason=exc.message))
            else:
                result.succeeded.append(webhook_id)
        self.cache.invalidate(organization_id)
        if result.failed:
            logger.warning(
                "Bulk set_active(%s): %d succeeded, %d failed",
                active, len(result.succeeded), len(result.failed),
                extra={"organization_id": organization_id},
            )
        return result

    async def bulk_delete(
        self, organization_id: str, webhook_ids: list[str], cascade: bool = False,
    ) -> BulkResult:
        result = BulkResult()
        for webhook_id in webhook_ids:
            try:
                async with self.db.get_session() as session:
                    await self.registry.delete(session, webhook_id, organization_id, cascade=cascade)
            except PrimeHooksError as exc:
                result.failed.append(BulkFailure(id=webhook_id, reason=exc.message))
            else:
                result.succeeded.append(webhook_id)
        self.cache.invalidate(organization_id)
        return result

    async def import_definitions(
        self,
        organization_id: str,
        items: list[Any],
        overwrite_existing: bool = False,
        created_by: str | None = None,
    ) -> BulkResult:
        """Create (or, with ``overwrite_existing``, update by name) one webhook per item.

        Each item gets its own transaction. Succeeded entries are webhook ids;
        failed entries are keyed by the item's 1-based position, e.g. ``#3``.
        """
        result = BulkResult()
        for position, raw in enumerate(items, start=1):
            key = f"#{position}"
            try:
                fields = coerce_definition(raw)
                async with self.db.get_session() as session:
                    existing = None
                    if fields["name"]:
                        existing = await self.registry.get_by_name(
                            session, organization_id, fields["name"].strip(),
                        )
                    if existing is not None and not overwrite_existing:
                        raise ConflictError(f"Webhook named {existing.name!r} already exists")
                    if existing is not None:
                        webhook = await self.registry.update(
                            session, existing.id, organization_id, **fields,
                        )
                    else:
                        webhook = await self.registry.create(
                            session, organization_id, created_by=created_by, **fields,
                        )
            except PrimeHooksError as exc:
                result.failed.append(BulkFailure(id=key, reason=exc.message))
            else:
                result.succeeded.append(webhook.id)
        self.cache.invalidate(organization_id)
        logger.info(
            "Imported webhooks: %d succeeded, %d failed",
            len(result.succeeded), len(result.failed),
            extra={"organization_id": organization_id},
        )
        return result
