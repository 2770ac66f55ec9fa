"""
PetMatch Backend - Timeline & Audit Helpers
===========================================

What:  Builds the append-only audit entries stored on adoption applications
       and writes the matching audit log lines.
How:   Entries are plain JSON-safe dicts. append_entry() returns a NEW list so
       the ORM always sees the JSON column as changed; existing entries are
       never modified or removed.
Who:   AdoptionService (timeline), ActivityService (audit log only).
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from app.database import ensure_utc

# Separate logger name so audit lines can be routed independently of app logs
audit_logger = logging.getLogger("petmatch.audit")


def isoformat(value: Optional[datetime]) -> Optional[str]:
    """ISO 8601 string in UTC, or None."""
    if value is None:
        return None
    return ensure_utc(value).isoformat()


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Inverse of isoformat() for values read back from JSON documents."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    return ensure_utc(datetime.fromisoformat(str(value)))


def timeline_entry(
    status: str,
    actor_id: Optional[str],
    when: datetime,
    notes: Optional[str] = None,
) -> Dict[str, Any]:
    """One status-change record: {status, date, notes, actor}."""
    return {
        "status": status,
        "date": isoformat(when),
        "notes": notes or None,
        "actor": actor_id,
    }


def append_entry(entries: Optional[List[Dict[str, Any]]], entry: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Return a copy of `entries` with `entry` appended (oldest first)."""
    return [*(entries or []), entry]


def replace_entry(
    entries: List[Dict[str, Any]],
    key: str,
    value: Any,
    replacement: Dict[str, Any],
) -> List[Dict[str, Any]]:
    """Return a copy of `entries` where the first item with item[key] == value is replaced."""
    result = []
    replaced = False
    for item in entries or []:
        if not replaced and item.get(key) == value:
            result.append(replacement)
            replaced = True
        else:
            result.append(item)
    return result


def log_event(event: str, **fields: Any) -> None:
    """
    Write one audit line, e.g.:
        adoption.transition application=... from=submitted to=under-review actor=...
    """
    details = " ".join(f"{key}={value}" for key, value in fields.items())
    audit_logger.info("%s %s", event, details, extra={"audit_event": event})
