"""Webhook definition export and import formats (JSON document and CSV)."""

import csv
import json
from datetime import datetime, timezone
from io import StringIO
from typing import Any

from primehooks.common.exceptions import ValidationError
from primehooks.webhooks.models import WebhookModel

EXPORT_VERSION = "1.0"

# Secrets are never exported.
EXPORT_FIELDS = (
    "name", "description", "endpoint_url", "http_method", "headers",
    "timeout_seconds", "retry_count", "rate_limit_per_minute", "is_active",
)

CSV_COLUMNS = EXPORT_FIELDS

_INT_FIELDS = ("timeout_seconds", "retry_count", "rate_limit_per_minute")
_TRUE = {"true", "1", "yes", "y"}
_FALSE = {"false", "0", "no", "n"}


def definition_of(webhook: WebhookModel) -> dict[str, Any]:
    data = {name: getattr(webhook, name) for name in EXPORT_FIELDS}
    data["description"] = data["description"] or ""
    data["headers"] = dict(data["headers"] or {})
    data["created_at"] = webhook.created_at.isoformat() if webhook.created_at else None
    data["updated_at"] = webhook.updated_at.isoformat() if webhook.updated_at else None
    return data


def to_document(definitions: list[dict[str, Any]]) -> dict[str, Any]:
    return {
        "metadata": {
            "exported_at": datetime.now(timezone.utc).isoformat(),
            "version": EXPORT_VERSION,
            "count": len(definitions),
        },
        "webhooks": definitions,
    }


def to_csv(definitions: list[dict[str, Any]]) -> str:
    """One row per webhook; headers are a JSON object in their own column."""
    output = StringIO()
    writer = csv.writer(output)
    writer.writerow(CSV_COLUMNS)
    for item in definitions:
        row = []
        for column in CSV_COLUMNS:
            value = item.get(column)
            if column == "headers":
                value = json.dumps(value or {}, sort_keys=True)
            elif isinstance(value, bool):
                value = "true" if value else "false"
            row.append("" if value is None else value)
        writer.writerow(row)
    return output.getvalue()


def parse_csv(text: str) -> list[dict[str, Any]]:
    """Read CSV rows into raw import items. Empty cells are dropped."""
    reader = csv.DictReader(StringIO(text))
    if reader.fieldnames is None or "name" not in reader.fieldnames:
        raise ValidationError("CSV import needs a header row with at least a name column")
    items = []
    for row in reader:
        item: dict[str, Any] = {}
        for key, value in row.items():
            if key is None or value is None or value.strip() == "":
                continue
            item[key.strip()] = value.strip()
        items.append(item)
    return items


def _as_bool(field: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ValidationError(f"{field} must be true or false")


def _as_int(field: str, value: Any) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer")


def coerce_definition(raw: Any) -> dict[str, Any]:
    """Turn one raw import item into keyword arguments for the registry.

    Unknown keys (ids, timestamps, counters, secrets) are ignored. Missing
    optional fields fall back to the registry defaults.
    """
    if not isinstance(raw, dict):
        raise ValidationError("Import item must be an object")

    fields: dict[str, Any] = {
        "name": raw.get("name"),
        "endpoint_url": raw.get("endpoint_url"),
    }
    for name in ("name", "endpoint_url"):
        if fields[name] is not None and not isinstance(fields[name], str):
            raise ValidationError(f"{name} must be a string")
    if fields["name"] is not None:
        fields["name"] = fields["name"].strip()

    if raw.get("description") is not None:
        fields["description"] = str(raw["description"])
    if raw.get("http_method") is not None:
        fields["http_method"] = str(raw["http_method"]).upper()
    for name in _INT_FIELDS:
        if raw.get(name) is not None:
            fields[name] = _as_int(name, raw[name])
    if raw.get("is_active") is not None:
        fields["is_active"] = _as_bool("is_active", raw["is_active"])

    headers = raw.get("headers")
    if isinstance(headers, str):
        try:
            headers = json.loads(headers)
        except ValueError:
            raise ValidationError("headers must be a JSON object")
    if headers is not None:
        if not isinstance(headers, dict):
            raise ValidationError("headers must be a JSON object")
        fields["headers"] = headers
    return fields
