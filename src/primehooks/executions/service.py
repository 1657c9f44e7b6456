"""Execution log: append-only execution records and the queries over them."""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import case, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from primehooks.common.exceptions import PersistenceError
from primehooks.executions.models import EXECUTION_STATUSES, ExecutionRecordModel
from primehooks.webhooks.models import WebhookModel

logger = logging.getLogger(__name__)


@dataclass
class ExecutionStats:
    total: int = 0
    successful: int = 0
    failed: int = 0
    timeouts: int = 0
    success_rate: int = 0  # percent, rounded
    average_response_time_ms: int = 0


class ExecutionLog:
    """Writes execution records and keeps webhook aggregate counters in step."""

    # ── Write ──

    async def record(
        self,
        session: AsyncSession,
        *,
        webhook_id: str,
        organization_id: str,
        event_type: str,
        status: str,
        response_time_ms: int,
        is_test: bool,
        status_code: int | None = None,
        error_message: str | None = None,
        payload_size: int = 0,
        request_headers: dict[str, str] | None = None,
        request_body: dict[str, Any] | None = None,
        response_body: Any = None,
        user_id: str | None = None,
    ) -> ExecutionRecordModel:
        """Insert one record; production records also bump the webhook counters.

        Raises PersistenceError when the database rejects the write.
        """
        if status not in EXECUTION_STATUSES:
            raise ValueError(f"Unknown execution status: {status}")

        record = ExecutionRecordModel(
            webhook_id=webhook_id,
            organization_id=organization_id,
            user_id=user_id,
            event_type=event_type,
            status=status,
            status_code=status_code,
            response_time_ms=max(0, int(response_time_ms)),
            error_message=error_message,
            payload_size=payload_size,
            retry_count=0,
            is_test=is_test,
            request_headers=request_headers or {},
            request_body=request_body or {},
            response_body=response_body,
        )
        try:
            session.add(record)
            await session.flush()
            if not is_test:
                await self._bump_counters(session, record)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to persist execution for webhook {webhook_id}: {exc}") from exc
        logger.debug(
            "Recorded %s execution %s for webhook %s (test=%s)",
            status, record.id, webhook_id, is_test,
        )
        return record

    async def _bump_counters(self, session: AsyncSession, record: ExecutionRecordModel) -> None:
        # Single UPDATE so concurrent triggers never lose an increment.
        values: dict[str, Any] = {
            "total_executions": WebhookModel.total_executions + 1,
            "last_executed_at": record.created_at,
        }
        if record.status == "success":
            values["successful_executions"] = WebhookModel.successful_executions + 1
            values["average_response_time_ms"] = (
                WebhookModel.average_response_time_ms * WebhookModel.successful_executions
                + record.response_time_ms
            ) / (WebhookModel.successful_executions + 1)
        else:
            values["failed_executions"] = WebhookModel.failed_executions + 1
        await session.execute(
            update(WebhookModel)
            .where(WebhookModel.id == record.webhook_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )

    # ── Read ──

    async def list_for_webhook(
        self,
        session: AsyncSession,
        webhook_id: str,
        status: str | None = None,
        is_test: bool | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[ExecutionRecordModel]:
        query = select(ExecutionRecordModel).where(
            ExecutionRecordModel.webhook_id == webhook_id,
        )
        if status is not None:
            query = query.where(ExecutionRecordModel.status == status)
        if is_test is not None:
            query = query.where(ExecutionRecordModel.is_test.is_(is_test))
        query = (
            query.order_by(ExecutionRecordModel.created_at.desc())
            .offset(offset)
            .limit(limit)
        )
        result = await session.execute(query)
        return list(result.scalars().all())

    async def last_error(
        self, session: AsyncSession, webhook_id: str,
    ) -> Optional[ExecutionRecordModel]:
        result = await session.execute(
            select(ExecutionRecordModel)
            .where(
                ExecutionRecordModel.webhook_id == webhook_id,
                ExecutionRecordModel.status != "success",
            )
            .order_by(ExecutionRecordModel.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def stats(
        self,
        session: AsyncSession,
        organization_id: str,
        since: datetime,
    ) -> ExecutionStats:
        """Production execution totals for an organization since a point in time."""
        window = (
            ExecutionRecordModel.organization_id == organization_id,
            ExecutionRecordModel.is_test.is_(False),
            ExecutionRecordModel.created_at >= since,
        )
        counts = (
            await session.execute(
                select(
                    func.count(ExecutionRecordModel.id),
                    func.sum(case((ExecutionRecordModel.status == "success", 1), else_=0)),
                    func.sum(case((ExecutionRecordModel.status == "failed", 1), else_=0)),
                    func.sum(case((ExecutionRecordModel.status == "timeout", 1), else_=0)),
                ).where(*window)
            )
        ).one()
        avg_ms = await session.scalar(
            select(func.avg(ExecutionRecordModel.response_time_ms)).where(
                *window, ExecutionRecordModel.status == "success",
            )
        )

        total = counts[0] or 0
        successful = counts[1] or 0
        return ExecutionStats(
            total=total,
            successful=successful,
            failed=counts[2] or 0,
            timeouts=counts[3] or 0,
            success_rate=round(successful / total * 100) if total else 0,
            average_response_time_ms=round(avg_ms or 0),
        )

    async def recent_errors(
        self,
        session: AsyncSession,
        organization_id: str,
        limit: int = 10,
    ) -> list[tuple[ExecutionRecordModel, str]]:
        """Latest failed/timed-out production records with the webhook name."""
        result = await session.execute(
            select(ExecutionRecordModel, WebhookModel.name)
            .join(WebhookModel, WebhookModel.id == ExecutionRecordModel.webhook_id)
            .where(
                ExecutionRecordModel.organization_id == organization_id,
                ExecutionRecordModel.is_test.is_(False),
                ExecutionRecordModel.status != "success",
            )
            .order_by(ExecutionRecordModel.created_at.desc())
            .limit(limit)
        )
        return [(row[0], row[1]) for row in result.all()]
