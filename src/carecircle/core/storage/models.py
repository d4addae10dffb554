"""Data models for the persistence layer.

Storage does not know the record kinds' field layouts: a record is stored as
an opaque payload dict plus the clear-text columns the history query needs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class StoredRecord:
    """One health record row; ``payload`` is encrypted at rest."""

    id: str
    group_id: str
    kind: str  # 'vitalSign' | 'meal' | 'excretion' | 'medication'
    recorded_at: str  # UTC ISO 8601
    payload: dict[str, Any] = field(default_factory=dict)
    created_at: str = ""
    updated_at: str | None = None


@dataclass
class StoredInsight:
    """One row of a group's append-only insight log."""

    id: str
    group_id: str
    kind: str
    message: str
    severity: str  # 'low' | 'medium' | 'high' | 'critical'
    trigger_value: Any = None
    baseline_value: Any = None
    related_record_id: str | None = None
    related_record_kind: str | None = None
    timestamp: str = ""  # assigned by the repository on write
