"""Plan/apply engine and reconciler for Emporix resources."""

from emporix_provisioner.engine.engine import ProvisionEngine
from emporix_provisioner.engine.handlers import EngineContext, RemoteResource
from emporix_provisioner.engine.policy import (
    AttributeClass,
    DeletionPolicy,
    KindPolicy,
    ResourceKind,
    apply_defaults,
    classify,
    policy_for,
)
from emporix_provisioner.engine.reconciler import Reconciler
from emporix_provisioner.engine.registry import ResourceTypeRegistry
from emporix_provisioner.engine.types import (
    Action,
    ApplyResult,
    LifecycleState,
    Outcome,
    Plan,
    ReconcileResult,
    ResourceChange,
)

__all__ = [
    "Action",
    "ApplyResult",
    "AttributeClass",
    "DeletionPolicy",
    "EngineContext",
    "KindPolicy",
    "LifecycleState",
    "Outcome",
    "Plan",
    "ProvisionEngine",
    "ReconcileResult",
    "Reconciler",
    "RemoteResource",
    "ResourceChange",
    "ResourceKind",
    "ResourceTypeRegistry",
    "apply_defaults",
    "classify",
    "policy_for",
]
