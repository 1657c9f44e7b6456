"""Webhook registry: CRUD and activation over webhook definitions."""

import logging
import re
from datetime import datetime
from typing import Any, Optional
from urllib.parse import urlparse

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from primehooks.assignments.models import AssignmentModel
from primehooks.common.config import PrimeHooksSettings
from primehooks.common.exceptions import ConflictError, NotFoundError, ValidationError
from primehooks.executions.models import ExecutionRecordModel
from primehooks.webhooks.models import WebhookModel
from primehooks.webhooks.transfer import definition_of

logger = logging.getLogger(__name__)

VALID_HTTP_METHODS: frozenset[str] = frozenset({"GET", "POST", "PUT", "PATCH", "DELETE"})

MAX_TIMEOUT_SECONDS = 300
MAX_RETRY_COUNT = 10

# RFC 9110 token characters for header names.
_HEADER_NAME_RE = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")

_UPDATABLE_FIELDS = (
    "name", "description", "endpoint_url", "http_method", "secret", "headers",
    "timeout_seconds", "retry_count", "rate_limit_per_minute", "is_active",
)


def _require_organization(organization_id: str | None) -> str:
    if not organization_id:
        raise ValidationError("organization_id is required")
    return organization_id


def is_printable_ascii(value: str) -> bool:
    """True for non-empty strings of visible ASCII characters and spaces."""
    return bool(value) and all(" " <= ch <= "~" for ch in value)


def _valid_header(name: Any, value: Any) -> bool:
    if not isinstance(name, str) or not _HEADER_NAME_RE.match(name):
        return False
    if not isinstance(value, str):
        return False
    return all(" " <= ch <= "~" or ch == "\t" for ch in value)


def validate_definition(
    name: str | None,
    endpoint_url: str | None,
    http_method: str = "POST",
    timeout_seconds: int = 30,
    retry_count: int = 3,
    rate_limit_per_minute: int = 60,
    headers: dict[str, Any] | None = None,
) -> None:
    """Raise ValidationError listing every problem with a webhook definition."""
    errors: list[str] = []

    if not name or not name.strip():
        errors.append("Webhook name is required")

    if not endpoint_url:
        errors.append("Webhook URL is required")
    else:
        parsed = urlparse(endpoint_url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            errors.append("Webhook URL must be a valid http(s) URL")

    if (http_method or "").upper() not in VALID_HTTP_METHODS:
        errors.append(f"Method must be one of {', '.join(sorted(VALID_HTTP_METHODS))}")

    if timeout_seconds is None or timeout_seconds <= 0:
        errors.append("Timeout must be greater than 0 seconds")
    elif timeout_seconds > MAX_TIMEOUT_SECONDS:
        errors.append(f"Timeout must not exceed {MAX_TIMEOUT_SECONDS} seconds")

    if retry_count is None or retry_count < 0 or retry_count > MAX_RETRY_COUNT:
        errors.append(f"Retry count must be between 0 and {MAX_RETRY_COUNT}")

    if rate_limit_per_minute is None or rate_limit_per_minute <= 0:
        errors.append("Rate limit must be greater than 0 requests per minute")

    # Header names must be HTTP tokens and values printable ASCII.
    for key, value in (headers or {}).items():
        if not _valid_header(key, value):
            errors.append(f"Invalid custom header: {key!r}")

    if errors:
        raise ValidationError("; ".join(errors), errors=errors)


class WebhookRegistry:
    """Organization-scoped store of webhook definitions."""

    def __init__(self, settings: PrimeHooksSettings):
        self.settings = settings

    # ── CRUD ──

    async def create(
        self,
        session: AsyncSession,
        organization_id: str,
        name: str,
        endpoint_url: str,
        http_method: str = "POST",
        secret: str | None = None,
        headers: dict[str, str] | None = None,
        timeout_seconds: int | None = None,
        retry_count: int | None = None,
        rate_limit_per_minute: int | None = None,
        description: str = "",
        is_active: bool = True,
        created_by: str | None = None,
    ) -> WebhookModel:
        _require_organization(organization_id)
        if timeout_seconds is None:
            timeout_seconds = self.settings.default_timeout_seconds
        if retry_count is None:
            retry_count = self.settings.default_retry_count
        if rate_limit_per_minute is None:
            rate_limit_per_minute = self.settings.default_rate_limit_per_minute

        validate_definition(
            name, endpoint_url, http_method, timeout_seconds,
            retry_count, rate_limit_per_minute, headers,
        )

        webhook = WebhookModel(
            organization_id=organization_id,
            name=name.strip(),
            description=description,
            endpoint_url=endpoint_url,
            http_method=http_method.upper(),
            secret=secret or None,
            headers=headers or {},
            timeout_seconds=timeout_seconds,
            retry_count=retry_count,
            rate_limit_per_minute=rate_limit_per_minute,
            is_active=is_active,
            created_by=created_by,
        )
        session.add(webhook)
        await session.flush()
        logger.info("Created webhook %s for organization %s", webhook.id, organization_id)
        return webhook

    async def get(
        self, session: AsyncSession, webhook_id: str, organization_id: str,
    ) -> Optional[WebhookModel]:
        _require_organization(organization_id)
        result = await session.execute(
            select(WebhookModel).where(
                WebhookModel.id == webhook_id,
                WebhookModel.organization_id == organization_id,
            )
        )
        return result.scalar_one_or_none()

    async def get_or_raise(
        self, session: AsyncSession, webhook_id: str, organization_id: str,
    ) -> WebhookModel:
        webhook = await self.get(session, webhook_id, organization_id)
        if webhook is None:
            raise NotFoundError(f"Webhook {webhook_id} not found")
        return webhook

    async def list_webhooks(
        self,
        session: AsyncSession,
        organization_id: str,
        is_active: bool | None = None,
        search: str | None = None,
    ) -> list[WebhookModel]:
        _require_organization(organization_id)
        query = select(WebhookModel).where(WebhookModel.organization_id == organization_id)
        if is_active is not None:
            query = query.where(WebhookModel.is_active == is_active)
        if search:
            query = query.where(
                func.lower(WebhookModel.name).contains(search.lower(), autoescape=True)
            )
        query = query.order_by(WebhookModel.created_at.desc())
        result = await session.execute(query)
        return list(result.scalars().all())

    async def get_by_name(
        self, session: AsyncSession, organization_id: str, name: str,
    ) -> Optional[WebhookModel]:
        """Oldest webhook in the organization with exactly this name."""
        _require_organization(organization_id)
        result = await session.execute(
            select(WebhookModel)
            .where(
                WebhookModel.organization_id == organization_id,
                WebhookModel.name == name,
            )
            .order_by(WebhookModel.created_at.asc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def export_definitions(
        self,
        session: AsyncSession,
        organization_id: str,
        include_inactive: bool = True,
        webhook_ids: list[str] | None = None,
    ) -> list[dict[str, Any]]:
        """Portable definitions for the organization's webhooks, without secrets."""
        webhooks = await self.list_webhooks(
            session, organization_id, is_active=None if include_inactive else True,
        )
        if webhook_ids is not None:
            wanted = set(webhook_ids)
            webhooks = [w for w in webhooks if w.id in wanted]
        webhooks.sort(key=lambda w: (w.created_at, w.id))
        return [definition_of(w) for w in webhooks]

    async def update(
        self,
        session: AsyncSession,
        webhook_id: str,
        organization_id: str,
        **updates: Any,
    ) -> WebhookModel:
        """Merge the given fields into a webhook; None values leave a field unchanged."""
        webhook = await self.get_or_raise(session, webhook_id, organization_id)
        changes = {
            field: updates[field]
            for field in _UPDATABLE_FIELDS
            if field in updates and updates[field] is not None
        }
        if "http_method" in changes:
            changes["http_method"] = changes["http_method"].upper()

        merged = {field: getattr(webhook, field) for field in _UPDATABLE_FIELDS}
        merged.update(changes)
        validate_definition(
            merged["name"], merged["endpoint_url"], merged["http_method"],
            merged["timeout_seconds"], merged["retry_count"],
            merged["rate_limit_per_minute"], merged["headers"],
        )

        for field, value in changes.items():
            setattr(webhook, field, value)
        await session.flush()
        return webhook

    async def delete(
        self,
        session: AsyncSession,
        webhook_id: str,
        organization_id: str,
        cascade: bool = False,
    ) -> None:
        """Hard-delete a webhook.

        Blocked with ConflictError while active assignments reference it,
        unless ``cascade`` is set, in which case those assignments go too.
        """
        webhook = await self.get_or_raise(session, webhook_id, organization_id)

        active_refs = await session.scalar(
            select(func.count()).select_from(AssignmentModel).where(
                AssignmentModel.webhook_id == webhook.id,
                AssignmentModel.is_active.is_(True),
            )
        )
        if active_refs and not cascade:
            raise ConflictError(
                f"Webhook {webhook_id} is referenced by {active_refs} active assignment(s)"
            )

        await session.execute(
            delete(AssignmentModel).where(AssignmentModel.webhook_id == webhook.id)
        )
        await session.execute(
            delete(ExecutionRecordModel).where(ExecutionRecordModel.webhook_id == webhook.id)
        )
        await session.delete(webhook)
        await session.flush()
        logger.info(
            "Deleted webhook %s (cascade=%s, active assignments removed=%d)",
            webhook_id, cascade, active_refs or 0,
        )

    async def set_active(
        self,
        session: AsyncSession,
        webhook_id: str,
        organization_id: str,
        active: bool,
    ) -> WebhookModel:
        webhook = await self.get_or_raise(session, webhook_id, organization_id)
        if webhook.is_active != active:
            webhook.is_active = active
            await session.flush()
        return webhook

    # ── Test results ──

    async def record_test_result(
        self,
        session: AsyncSession,
        webhook_id: str,
        status: str,
        tested_at: datetime,
    ) -> None:
        webhook = await session.get(WebhookModel, webhook_id)
        if webhook is None:
            raise NotFoundError(f"Webhook {webhook_id} not found")
        webhook.last_test_status = status
        webhook.last_tested_at = tested_at
        await session.flush()
