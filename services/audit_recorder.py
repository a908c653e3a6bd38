# WORKFLOW: Audit trail for calculations, searches and rule mutations.
# Used by: Tariff service (every successful core operation)
# Functions:
# 1. record() - Build and append one audit entry; never raises
# 2. serialize_params() / serialize_result() - JSON snapshots, result capped in size
# 3. list_recent() - Newest-first audit views with parsed parameters
#
# Audit flow: Operation outcome -> Snapshots -> QueryAuditEntry -> Audit store
# Failure flow: Store error -> structlog event -> caller keeps its result
# Oversized results become a JSON envelope {"truncated", "original_length", "preview"}
# so the retained portion always deserializes.

import json
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, List, Optional

import structlog
from pydantic import BaseModel

from core.config import settings
from db.audit_store import AuditStore
from db.models import QueryAuditEntry
from schemas.response import QueryAuditView, QueryType
from services.param_parser import parse_query_params

audit_log = structlog.get_logger()

PARAMS_MAX_CHARS = 2048
# Smallest cap that still holds an envelope with a long original_length
MIN_SNAPSHOT_CHARS = 128


def _jsonable(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return value


def _dumps(value: Any) -> str:
    return json.dumps(_jsonable(value), sort_keys=True, separators=(",", ":"))


def cap_snapshot(text: str, max_chars: int) -> str:
    """Return ``text`` or, when longer than ``max_chars``, a truncation envelope that fits."""
    if max_chars < MIN_SNAPSHOT_CHARS:
        raise ValueError(f"Snapshot cap {max_chars} is below the minimum of {MIN_SNAPSHOT_CHARS} characters")
    if len(text) <= max_chars:
        return text

    envelope = {"truncated": True, "original_length": len(text), "preview": ""}
    preview = text[:max_chars - len(_dumps(envelope))]
    # Escaped characters grow on re-encoding; shrink until the envelope fits
    while preview and len(_dumps(dict(envelope, preview=preview))) > max_chars:
        overshoot = len(_dumps(dict(envelope, preview=preview))) - max_chars
        preview = preview[:len(preview) - max(overshoot, 1)]
    return _dumps(dict(envelope, preview=preview))


def serialize_params(params: Any) -> str:
    if isinstance(params, str):
        text = params
    else:
        text = _dumps(params)
    return cap_snapshot(text, PARAMS_MAX_CHARS)


def serialize_result(result: Any, max_chars: Optional[int] = None) -> Optional[str]:
    if result is None:
        return None
    return cap_snapshot(_dumps(result), max_chars or settings.audit_snapshot_max_chars)


class AuditRecorder:
    """Appends audit entries without ever failing the calling operation."""

    def __init__(self, store: AuditStore, max_result_chars: Optional[int] = None):
        self.store = store
        self.max_result_chars = max_result_chars or settings.audit_snapshot_max_chars
        if self.max_result_chars < MIN_SNAPSHOT_CHARS:
            raise ValueError(
                f"max_result_chars must be at least {MIN_SNAPSHOT_CHARS}, got {self.max_result_chars}"
            )

    def record(self, query_type: QueryType, params: Any, result: Any = None,
               origin_code: Optional[str] = None, destination_code: Optional[str] = None,
               actor: Optional[int] = None) -> Optional[QueryAuditEntry]:
        """
        Append one audit entry.

        Args:
            query_type: Operation type
            params: Request parameters (mapping or pre-serialized string)
            result: Result object, list of objects, or None
            origin_code: Route origin, if known
            destination_code: Route destination, if known
            actor: Authenticated user id, None for anonymous

        Returns:
            The stored entry, or None when the write failed
        """
        try:
            entry = QueryAuditEntry(
                actor_user_id=actor,
                type=QueryType(query_type).value,
                params_snapshot=serialize_params(params),
                result_snapshot=serialize_result(result, self.max_result_chars),
                origin_code=origin_code,
                destination_code=destination_code,
                created_at=datetime.now(timezone.utc)
            )
            stored = self.store.append(entry)
            audit_log.info(
                "audit_entry_recorded",
                entry_id=stored.id,
                type=stored.type,
                actor=actor,
                origin=origin_code,
                destination=destination_code
            )
            return stored
        except Exception as e:
            audit_log.error(
                "audit_write_failed",
                type=str(getattr(query_type, "value", query_type)),
                actor=actor,
                origin=origin_code,
                destination=destination_code,
                error_type=type(e).__name__,
                error_message=str(e)
            )
            return None

    def list_recent(self, limit: int = 50) -> List[QueryAuditView]:
        """Newest-first audit entries with parameters parsed for display."""
        views = []
        for entry in self.store.list_recent(limit):
            parsed = parse_query_params(entry.params_snapshot)
            views.append(QueryAuditView(
                id=entry.id,
                type=entry.type,
                raw_params=entry.params_snapshot,
                result_snapshot=entry.result_snapshot,
                actor_user_id=entry.actor_user_id,
                origin_code=entry.origin_code,
                destination_code=entry.destination_code,
                created_at=entry.created_at,
                action=entry.type,
                origin=parsed.get("origin"),
                destination=parsed.get("destination") or parsed.get("dest"),
                category=parsed.get("category") or parsed.get("cat"),
                value=parsed.get("declared_value") or parsed.get("val"),
                effective_date=parsed.get("date")
            ))
        return views


# Factory function
def create_audit_recorder(store: AuditStore) -> AuditRecorder:
    """Create audit recorder instance."""
    return AuditRecorder(store)
