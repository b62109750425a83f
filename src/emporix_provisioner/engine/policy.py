"""Per-kind lifecycle policy table.

Every resource kind is described by one static :class:`KindPolicy` entry:
which attributes form its identity, which may change in place, which are
only ever read back from the API, what defaults apply, and how the kind is
destroyed.  The reconciler is a single algorithm parameterized by this data.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from emporix_provisioner.engine.errors import MissingIdentityError, UnknownAttributeError

if TYPE_CHECKING:
    from collections.abc import Mapping

    from emporix_provisioner.engine.diff import CompareStrategy


class ResourceKind(str, Enum):
    COUNTRY = "country"
    CURRENCY = "currency"
    SITE_SETTINGS = "site_settings"
    TENANT_CONFIGURATION = "tenant_configuration"
    PAYMENT_MODE = "payment_mode"
    TAX = "tax"


class DeletionPolicy(str, Enum):
    HARD_DELETE = "hard_delete"
    DEACTIVATE = "deactivate"
    IMMUTABLE = "immutable"


class AttributeClass(str, Enum):
    IDENTITY = "identity"
    MUTABLE = "mutable"
    CREATE_ONLY = "create_only"
    COMPUTED = "computed"


@dataclass(frozen=True)
class KindPolicy:
    kind: ResourceKind
    identity_key: tuple[str, ...]
    deletion: DeletionPolicy
    mutable: frozenset[str]
    # Settable on create only; a change forces replacement.
    create_only: frozenset[str] = frozenset()
    computed: frozenset[str] = frozenset()
    defaults: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    # (attribute, inactive value) for DEACTIVATE kinds.
    deactivation: tuple[str, Any] | None = None
    compare: Mapping[str, CompareStrategy] = field(
        default_factory=lambda: MappingProxyType({})
    )
    # Creation/update ordering; lower runs first, deletes run in reverse.
    priority: int = 100

    @property
    def attributes(self) -> frozenset[str]:
        return frozenset(self.identity_key) | self.mutable | self.create_only | self.computed


_POLICIES: Mapping[ResourceKind, KindPolicy] = MappingProxyType(
    {
        ResourceKind.COUNTRY: KindPolicy(
            kind=ResourceKind.COUNTRY,
            identity_key=("code",),
            deletion=DeletionPolicy.DEACTIVATE,
            mutable=frozenset({"active"}),
            computed=frozenset({"name", "regions"}),
            defaults=MappingProxyType({"active": True}),
            deactivation=("active", False),
            compare=MappingProxyType({"regions": "set"}),
            priority=10,
        ),
        ResourceKind.CURRENCY: KindPolicy(
            kind=ResourceKind.CURRENCY,
            identity_key=("code",),
            deletion=DeletionPolicy.HARD_DELETE,
            mutable=frozenset({"name"}),
            compare=MappingProxyType({"name": "exact"}),
            priority=10,
        ),
        ResourceKind.SITE_SETTINGS: KindPolicy(
            kind=ResourceKind.SITE_SETTINGS,
            identity_key=("code",),
            deletion=DeletionPolicy.IMMUTABLE,
            mutable=frozenset(
                {
                    "name",
                    "active",
                    "default",
                    "includes_tax",
                    "default_language",
                    "languages",
                    "currency",
                    "available_currencies",
                    "ship_to_countries",
                    "tax_calculation_address_type",
                    "decimal_points",
                    "cart_calculation_scale",
                    "home_base",
                    "assisted_buying",
                    "mixins",
                    "mixin_schemas",
                }
            ),
            defaults=MappingProxyType(
                {
                    "active": True,
                    "default": False,
                    "tax_calculation_address_type": "BILLING_ADDRESS",
                    "decimal_points": 2,
                    "cart_calculation_scale": 2,
                }
            ),
            compare=MappingProxyType(
                {
                    "ship_to_countries": "set",
                    "available_currencies": "set",
                    "home_base": "exact",
                    "assisted_buying": "exact",
                    "mixins": "exact",
                    "mixin_schemas": "exact",
                }
            ),
            priority=50,
        ),
        ResourceKind.TENANT_CONFIGURATION: KindPolicy(
            kind=ResourceKind.TENANT_CONFIGURATION,
            identity_key=("key",),
            deletion=DeletionPolicy.HARD_DELETE,
            mutable=frozenset({"value", "secured"}),
            computed=frozenset({"version"}),
            defaults=MappingProxyType({"secured": False}),
            compare=MappingProxyType({"value": "exact"}),
        ),
        ResourceKind.PAYMENT_MODE: KindPolicy(
            kind=ResourceKind.PAYMENT_MODE,
            identity_key=("code",),
            deletion=DeletionPolicy.HARD_DELETE,
            mutable=frozenset({"active", "configuration"}),
            create_only=frozenset({"payment_provider"}),
            computed=frozenset({"id"}),
            defaults=MappingProxyType({"active": True}),
            compare=MappingProxyType({"configuration": "exact"}),
        ),
        ResourceKind.TAX: KindPolicy(
            kind=ResourceKind.TAX,
            identity_key=("country_code",),
            deletion=DeletionPolicy.HARD_DELETE,
            mutable=frozenset({"tax_classes"}),
            compare=MappingProxyType({"tax_classes": "exact"}),
            priority=20,
        ),
    }
)


def policy_for(kind: ResourceKind | str) -> KindPolicy:
    """Look up the policy entry for *kind* (enum member or its value)."""
    return _POLICIES[ResourceKind(kind)]


def classify(kind: ResourceKind | str, attribute: str) -> AttributeClass:
    """Classify *attribute* for *kind*.

    Raises:
        UnknownAttributeError: If the attribute is not declared for the kind.
    """
    policy = policy_for(kind)
    if attribute in policy.identity_key:
        return AttributeClass.IDENTITY
    if attribute in policy.mutable:
        return AttributeClass.MUTABLE
    if attribute in policy.create_only:
        return AttributeClass.CREATE_ONLY
    if attribute in policy.computed:
        return AttributeClass.COMPUTED
    raise UnknownAttributeError(policy.kind.value, attribute)


def apply_defaults(kind: ResourceKind | str, desired: Mapping[str, Any]) -> dict[str, Any]:
    """Return *desired* with computed keys dropped and unset defaults filled in.

    ``None`` counts as unset.  The input mapping is not modified.
    """
    policy = policy_for(kind)
    result: dict[str, Any] = {}
    for name, value in desired.items():
        if classify(kind, name) is AttributeClass.COMPUTED or value is None:
            continue
        result[name] = value
    for name, value in policy.defaults.items():
        result.setdefault(name, value)
    return result


def identity_of(kind: ResourceKind | str, attributes: Mapping[str, Any]) -> dict[str, Any]:
    """Extract the identity mapping from *attributes*.

    Raises:
        MissingIdentityError: If any identity attribute is absent or empty.
    """
    policy = policy_for(kind)
    missing = [k for k in policy.identity_key if attributes.get(k) in (None, "")]
    if missing:
        raise MissingIdentityError(policy.kind.value, missing)
    return {k: attributes[k] for k in policy.identity_key}


def parse_identity(kind: ResourceKind | str, raw: str) -> dict[str, Any]:
    """Parse an import id (``"US"``, or ``"a/b"`` for composite keys)."""
    policy = policy_for(kind)
    parts = raw.split("/") if len(policy.identity_key) > 1 else [raw]
    if len(parts) != len(policy.identity_key) or not all(parts):
        raise ValueError(
            f"Invalid import id {raw!r} for {policy.kind.value}: "
            f"expected {'/'.join(policy.identity_key)}"
        )
    return dict(zip(policy.identity_key, parts, strict=True))


def desired_from_observed(
    kind: ResourceKind | str, observed: Mapping[str, Any]
) -> dict[str, Any]:
    """Project observed attributes onto the caller-suppliable (non-computed) ones."""
    policy = policy_for(kind)
    return {
        k: v for k, v in observed.items() if k in policy.attributes and k not in policy.computed
    }
