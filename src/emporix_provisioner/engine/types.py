"""Engine types (reconcile results, plan, changes, metadata)."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from emporix_provisioner.core.state import ResourceInstance


class Outcome(str, Enum):
    SUCCESS = "success"
    REQUIRES_REPLACEMENT = "requires_replacement"
    NOT_FOUND = "not_found"
    ERROR = "error"


class LifecycleState(str, Enum):
    UNMANAGED = "unmanaged"
    CREATED = "created"
    RECONCILED = "reconciled"
    PENDING_REPLACEMENT = "pending_replacement"
    DESTROYED = "destroyed"


class ReconcileFailure(BaseModel):
    category: str
    detail: str


class ReconcileResult(BaseModel):
    """Structured outcome of one reconciler operation."""

    outcome: Outcome
    state: LifecycleState
    instance: ResourceInstance | None = None
    diff: dict[str, Any] = Field(default_factory=dict)
    error: ReconcileFailure | None = None


class Action(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    REPLACE = "replace"
    DELETE = "delete"
    NOOP = "no-op"


class PlanMetadata(BaseModel):
    tenant: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    destroy: bool
    refresh: bool
    state_lineage: str
    state_serial: int
    state_digest: str
    engine_version: str


class ResourceChange(BaseModel):
    address: str
    resource_type: str
    action: Action
    label: str | None = None
    desired: dict[str, Any] | None = None
    prior: dict[str, Any] | None = None
    diff: dict[str, Any] | None = None


class Plan(BaseModel):
    metadata: PlanMetadata
    changes: list[ResourceChange]

    def summary(self) -> dict[str, int]:
        counts = {a.value: 0 for a in Action}
        for c in self.changes:
            counts[c.action.value] += 1
        return counts

    def save(self, path: Path) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        data = self.model_dump(mode="json")
        path.write_text(json.dumps(data, indent=2, sort_keys=True) + "\n", encoding="utf-8")

    @classmethod
    def load(cls, path: Path) -> Plan:
        path = Path(path)
        return cls.model_validate_json(path.read_text(encoding="utf-8"))


class ApplyResult(BaseModel):
    applied: list[ResourceChange] = Field(default_factory=list)

    def summary(self) -> dict[str, int]:
        counts = {a.value: 0 for a in Action}
        for c in self.applied:
            counts[c.action.value] += 1
        return counts
