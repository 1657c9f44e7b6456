"""Trigger engine: sign, send, time out, classify and record one webhook call."""

import asyncio
import json
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

import httpx
from sqlalchemy.exc import SQLAlchemyError

from primehooks.common.config import PrimeHooksSettings
from primehooks.common.database import DatabaseManager
from primehooks.common.exceptions import PersistenceError
from primehooks.executions.service import ExecutionLog
from primehooks.webhooks.models import WebhookModel
from primehooks.webhooks.signing import SIGNATURE_VERSION, serialize_body, signature_header

logger = logging.getLogger(__name__)

UNPARSEABLE_RESPONSE = "Could not parse response"


@dataclass(frozen=True)
class WebhookTarget:
    """Snapshot of the webhook fields a call needs, detached from any session."""

    id: str
    organization_id: str
    name: str
    endpoint_url: str
    http_method: str = "POST"
    secret: Optional[str] = None
    headers: dict[str, str] = field(default_factory=dict)
    timeout_seconds: int = 30

    @classmethod
    def from_model(cls, webhook: WebhookModel) -> "WebhookTarget":
        return cls(
            id=webhook.id,
            organization_id=webhook.organization_id,
            name=webhook.name,
            endpoint_url=webhook.endpoint_url,
            http_method=webhook.http_method or "POST",
            secret=webhook.secret,
            headers=dict(webhook.headers or {}),
            timeout_seconds=webhook.timeout_seconds or 30,
        )


@dataclass
class TriggerContext:
    """Who pressed what, for production triggers."""

    organization_id: str
    feature_page: str
    position: str
    user_id: Optional[str] = None
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass
class ExecutionOutcome:
    webhook_id: str
    event_type: str
    status: str
    response_time_ms: int
    is_test: bool
    status_code: Optional[int] = None
    error_message: Optional[str] = None
    response_body: Any = None
    payload_size: int = 0
    request_headers: dict[str, str] = field(default_factory=dict)
    request_body: dict[str, Any] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return self.status == "success"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _parse_response_body(response: httpx.Response) -> Any:
    try:
        if "application/json" in response.headers.get("content-type", ""):
            return response.json()
        return response.text
    except (ValueError, UnicodeDecodeError):
        return UNPARSEABLE_RESPONSE


class TriggerEngine:
    """Executes single-attempt webhook calls and records every outcome."""

    def __init__(
        self,
        settings: PrimeHooksSettings,
        db: DatabaseManager,
        execution_log: ExecutionLog | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.settings = settings
        self.db = db
        self.execution_log = execution_log or ExecutionLog()
        self._http_client = http_client

    def _get_http_client(self) -> httpx.AsyncClient:
        """Lazy-init httpx.AsyncClient."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(follow_redirects=True)
        return self._http_client

    async def aclose(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    # ── Request building ──

    def build_body(
        self,
        target: WebhookTarget,
        payload: dict[str, Any],
        event_type: str,
        timestamp: str,
        context: TriggerContext | None = None,
    ) -> dict[str, Any]:
        data = dict(payload)
        if context is not None:
            data.update(context.extra)
            data.update({
                "organization_id": context.organization_id,
                "user_id": context.user_id,
                "page": context.feature_page,
                "position": context.position,
                "triggered_at": timestamp,
                "user_triggered": True,
            })
        return {
            "event_type": event_type,
            "webhook_id": target.id,
            "timestamp": timestamp,
            "data": data,
        }

    def build_headers(
        self,
        target: WebhookTarget,
        body_json: str,
        event_type: str,
        timestamp: str,
        is_test: bool,
    ) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "User-Agent": self.settings.test_user_agent if is_test else self.settings.user_agent,
            "X-Event-Type": event_type,
            "X-Webhook-ID": target.id,
            "X-Timestamp": timestamp,
        }
        headers.update(target.headers)
        if is_test:
            headers["X-Test"] = "true"
        if target.secret:
            headers["X-Signature"] = signature_header(body_json, target.secret)
            headers["X-Signature-Version"] = SIGNATURE_VERSION
        return headers

    # ── Execution ──

    async def execute(
        self,
        target: WebhookTarget,
        payload: dict[str, Any],
        event_type: str,
        is_test: bool = False,
        context: TriggerContext | None = None,
    ) -> ExecutionOutcome:
        """Send one call and record it. Network failures come back as outcomes."""
        timestamp = _now_iso()
        body = self.build_body(target, payload, event_type, timestamp, context)
        body_json = serialize_body(body)
        body_bytes = body_json.encode("utf-8")
        headers = self.build_headers(target, body_json, event_type, timestamp, is_test)

        outcome = ExecutionOutcome(
            webhook_id=target.id,
            event_type=event_type,
            status="failed",
            response_time_ms=0,
            is_test=is_test,
            payload_size=len(body_bytes),
            request_headers=headers,
            request_body=json.loads(body_json),
        )
        await self._send(target, body_bytes, headers, outcome)

        logger.info(
            "Webhook %s %s in %dms", target.id, outcome.status, outcome.response_time_ms,
            extra={"webhook_id": target.id, "organization_id": target.organization_id,
                   "status": outcome.status},
        )
        await self._persist(target, outcome, context.user_id if context else None)
        return outcome

    async def _send(
        self,
        target: WebhookTarget,
        body_bytes: bytes,
        headers: dict[str, str],
        outcome: ExecutionOutcome,
    ) -> None:
        client = self._get_http_client()
        timeout = target.timeout_seconds
        started = time.perf_counter()
        try:
            response = await asyncio.wait_for(
                client.request(
                    target.http_method,
                    target.endpoint_url,
                    content=body_bytes,
                    headers=headers,
                    timeout=timeout,
                ),
                timeout=timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException):
            outcome.response_time_ms = self._elapsed_ms(started)
            outcome.status = "timeout"
            outcome.error_message = f"Request timeout after {timeout}s"
            return
        except (httpx.HTTPError, httpx.InvalidURL, OSError, ValueError, TypeError) as exc:
            # ValueError/TypeError come from building the request (e.g. non-ASCII headers).
            outcome.response_time_ms = self._elapsed_ms(started)
            outcome.status = "failed"
            outcome.error_message = f"Network error: {str(exc) or exc.__class__.__name__}"
            return

        outcome.response_time_ms = self._elapsed_ms(started)
        outcome.status_code = response.status_code
        outcome.response_body = _parse_response_body(response)
        if 200 <= response.status_code < 300:
            outcome.status = "success"
        else:
            outcome.status = "failed"
            outcome.error_message = f"HTTP {response.status_code}: {response.reason_phrase}"

    @staticmethod
    def _elapsed_ms(started: float) -> int:
        return max(0, round((time.perf_counter() - started) * 1000))

    async def _persist(
        self,
        target: WebhookTarget,
        outcome: ExecutionOutcome,
        user_id: str | None,
    ) -> None:
        """Write the execution record; a failed write never changes the outcome."""
        try:
            async with self.db.get_session() as session:
                await self.execution_log.record(
                    session,
                    webhook_id=target.id,
                    organization_id=target.organization_id,
                    user_id=user_id,
                    event_type=outcome.event_type,
                    status=outcome.status,
                    status_code=outcome.status_code,
                    response_time_ms=outcome.response_time_ms,
                    error_message=outcome.error_message,
                    payload_size=outcome.payload_size,
                    is_test=outcome.is_test,
                    request_headers=outcome.request_headers,
                    request_body=outcome.request_body,
                    response_body=outcome.response_body,
                )
        except (PersistenceError, SQLAlchemyError) as exc:
            logger.warning(
                "Failed to log execution for webhook %s: %s", target.id, exc,
                extra={"webhook_id": target.id},
            )
