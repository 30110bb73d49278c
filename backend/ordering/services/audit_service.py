# Overview: Audit sink; append-only records of every state-changing operation.

from __future__ import annotations

from ..extensions import db
from ..models import AuditLogEntry

"""
Audit Log Invariants (authoritative)

- Append-only: entries are never updated or deleted.
- Entries are written inside the same DB transaction as the change they
  record; a rolled-back operation leaves no audit trace.
- No domain logic here.
"""


def record(
    *,
    actor_id: str | None,
    action: str,
    resource_type: str,
    resource_id: str,
    old_values: dict | None = None,
    new_values: dict | None = None,
) -> AuditLogEntry:
    entry = AuditLogEntry(
        actor_id=actor_id,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        old_values=old_values,
        new_values=new_values,
    )
    db.session.add(entry)
    db.session.flush()
    return entry


def list_entries(
    *,
    resource_type: str | None = None,
    resource_id: str | None = None,
    action: str | None = None,
    limit: int = 100,
) -> list[AuditLogEntry]:
    """Read back entries, oldest first."""
    query = db.session.query(AuditLogEntry)
    if resource_type:
        query = query.filter(AuditLogEntry.resource_type == resource_type)
    if resource_id:
        query = query.filter(AuditLogEntry.resource_id == resource_id)
    if action:
        query = query.filter(AuditLogEntry.action == action)
    return query.order_by(AuditLogEntry.id.asc()).limit(limit).all()
