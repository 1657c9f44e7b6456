"""Health/test tracker: ad-hoc test invocations and derived health status."""

import enum
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from primehooks.common.config import PrimeHooksSettings
from primehooks.common.database import DatabaseManager
from primehooks.common.exceptions import ValidationError
from primehooks.executions.engine import ExecutionOutcome, TriggerEngine, WebhookTarget
from primehooks.executions.service import ExecutionLog
from primehooks.webhooks.models import WebhookModel
from primehooks.webhooks.service import WebhookRegistry, is_printable_ascii

logger = logging.getLogger(__name__)

TEST_EVENT_TYPE = "webhook.test"

HEALTHY_SUCCESS_RATE = 0.9
WARNING_SUCCESS_RATE = 0.7


class HealthStatus(str, enum.Enum):
    HEALTHY = "healthy"
    WARNING = "warning"
    ERROR = "error"
    UNKNOWN = "unknown"


def derive_health_status(
    last_test_status: str | None,
    total_executions: int,
    successful_executions: int,
) -> HealthStatus:
    """Classify a webhook: last explicit test first, then production success rate."""
    if last_test_status == "success":
        return HealthStatus.HEALTHY
    if last_test_status in ("failed", "timeout"):
        return HealthStatus.ERROR
    if total_executions > 0:
        rate = successful_executions / total_executions
        if rate >= HEALTHY_SUCCESS_RATE:
            return HealthStatus.HEALTHY
        if rate >= WARNING_SUCCESS_RATE:
            return HealthStatus.WARNING
        return HealthStatus.ERROR
    return HealthStatus.UNKNOWN


@dataclass
class HealthReport:
    webhook_id: str
    status: HealthStatus
    success_rate: Optional[float]
    total_executions: int
    successful_executions: int
    failed_executions: int
    average_response_time_ms: int
    last_executed_at: Optional[datetime] = None
    last_test_status: Optional[str] = None
    last_tested_at: Optional[datetime] = None
    last_error_message: Optional[str] = None
    last_error_at: Optional[datetime] = None


def health_of(webhook: WebhookModel) -> HealthStatus:
    return derive_health_status(
        webhook.last_test_status,
        webhook.total_executions or 0,
        webhook.successful_executions or 0,
    )


class HealthTracker:
    """Runs test invocations and reports per-webhook health."""

    def __init__(
        self,
        settings: PrimeHooksSettings,
        db: DatabaseManager,
        registry: WebhookRegistry,
        engine: TriggerEngine,
        execution_log: ExecutionLog | None = None,
    ):
        self.settings = settings
        self.db = db
        self.registry = registry
        self.engine = engine
        self.execution_log = execution_log or engine.execution_log

    def test_payload(self, target: WebhookTarget) -> dict:
        return {
            "message": f"This is a test webhook call from {self.settings.user_agent_product}",
            "test": True,
            "webhook_name": target.name,
        }

    async def run_test(
        self,
        organization_id: str,
        webhook_id: str,
        event_type: str = TEST_EVENT_TYPE,
    ) -> ExecutionOutcome:
        """Fire a test call and store its result as the webhook's last test.

        Aggregate execution counters are left untouched.
        """
        event_type = event_type or TEST_EVENT_TYPE
        if not is_printable_ascii(event_type):
            raise ValidationError("Event type must be printable ASCII")
        async with self.db.get_session() as session:
            webhook = await self.registry.get_or_raise(session, webhook_id, organization_id)
            target = WebhookTarget.from_model(webhook)

        outcome = await self.engine.execute(
            target, self.test_payload(target), event_type, is_test=True,
        )

        async with self.db.get_session() as session:
            await self.registry.record_test_result(
                session, webhook_id, outcome.status, datetime.now(timezone.utc),
            )
        logger.info(
            "Test of webhook %s finished with %s", webhook_id, outcome.status,
            extra={"webhook_id": webhook_id, "status": outcome.status},
        )
        return outcome

    async def get_health(
        self,
        session: AsyncSession,
        organization_id: str,
        webhook_id: str,
    ) -> HealthReport:
        webhook = await self.registry.get_or_raise(session, webhook_id, organization_id)
        last_error = await self.execution_log.last_error(session, webhook.id)

        total = webhook.total_executions or 0
        successful = webhook.successful_executions or 0
        return HealthReport(
            webhook_id=webhook.id,
            status=health_of(webhook),
            success_rate=(successful / total) if total else None,
            total_executions=total,
            successful_executions=successful,
            failed_executions=webhook.failed_executions or 0,
            average_response_time_ms=round(webhook.average_response_time_ms or 0),
            last_executed_at=webhook.last_executed_at,
            last_test_status=webhook.last_test_status,
            last_tested_at=webhook.last_tested_at,
            last_error_message=last_error.error_message if last_error else None,
            last_error_at=last_error.created_at if last_error else None,
        )
