"""Dependency injection singletons for primehooks."""

from primehooks.assignments.service import AssignmentMap
from primehooks.common.config import get_settings
from primehooks.common.database import DatabaseManager
from primehooks.executions.engine import TriggerEngine
from primehooks.executions.service import ExecutionLog
from primehooks.health.service import HealthTracker
from primehooks.organizations.service import OrganizationService
from primehooks.query.cache import QueryCache
from primehooks.query.client import WebhookQueryClient
from primehooks.webhooks.service import WebhookRegistry

_db: DatabaseManager | None = None
_organizations: OrganizationService | None = None
_registry: WebhookRegistry | None = None
_assignments: AssignmentMap | None = None
_execution_log: ExecutionLog | None = None
_engine: TriggerEngine | None = None
_tracker: HealthTracker | None = None
_cache: QueryCache | None = None
_query_client: WebhookQueryClient | None = None


def get_db() -> DatabaseManager:
    global _db
    if _db is None:
        _db = DatabaseManager(get_settings())
    return _db


def get_organization_service() -> OrganizationService:
    global _organizations
    if _organizations is None:
        _organizations = OrganizationService()
    return _organizations


def get_webhook_registry() -> WebhookRegistry:
    global _registry
    if _registry is None:
        _registry = WebhookRegistry(get_settings())
    return _registry


def get_assignment_map() -> AssignmentMap:
    global _assignments
    if _assignments is None:
        _assignments = AssignmentMap()
    return _assignments


def get_execution_log() -> ExecutionLog:
    global _execution_log
    if _execution_log is None:
        _execution_log = ExecutionLog()
    return _execution_log


def get_trigger_engine() -> TriggerEngine:
    global _engine
    if _engine is None:
        _engine = TriggerEngine(get_settings(), get_db(), execution_log=get_execution_log())
    return _engine


def get_health_tracker() -> HealthTracker:
    global _tracker
    if _tracker is None:
        _tracker = HealthTracker(
            get_settings(), get_db(), get_webhook_registry(), get_trigger_engine(),
            execution_log=get_execution_log(),
        )
    return _tracker


def get_query_cache() -> QueryCache:
    global _cache
    if _cache is None:
        _cache = QueryCache(ttl=get_settings().assignment_cache_ttl)
    return _cache


def get_query_client() -> WebhookQueryClient:
    global _query_client
    if _query_client is None:
        _query_client = WebhookQueryClient(
            db=get_db(),
            cache=get_query_cache(),
            registry=get_webhook_registry(),
            assignments=get_assignment_map(),
            engine=get_trigger_engine(),
            tracker=get_health_tracker(),
        )
    return _query_client


def reset_singletons() -> None:
    """Reset all singletons (for testing)."""
    global _db, _organizations, _registry, _assignments, _execution_log
    global _engine, _tracker, _cache, _query_client
    _db = None
    _organizations = None
    _registry = None
    _assignments = None
    _execution_log = None
    _engine = None
    _tracker = None
    _cache = None
    _query_client = None
