"""Tests for the per-kind lifecycle policy table."""

from __future__ import annotations

import pytest

from emporix_provisioner.engine.errors import MissingIdentityError, UnknownAttributeError
from emporix_provisioner.engine.policy import (
    AttributeClass,
    DeletionPolicy,
    ResourceKind,
    apply_defaults,
    classify,
    desired_from_observed,
    identity_of,
    parse_identity,
    policy_for,
)


class TestPolicyTable:
    def test_every_kind_has_an_entry(self) -> None:
        assert all(policy_for(kind).kind is kind for kind in ResourceKind)

    @pytest.mark.parametrize(
        ("kind", "deletion"),
        [
            (ResourceKind.COUNTRY, DeletionPolicy.DEACTIVATE),
            (ResourceKind.CURRENCY, DeletionPolicy.HARD_DELETE),
            (ResourceKind.SITE_SETTINGS, DeletionPolicy.IMMUTABLE),
            (ResourceKind.TENANT_CONFIGURATION, DeletionPolicy.HARD_DELETE),
            (ResourceKind.PAYMENT_MODE, DeletionPolicy.HARD_DELETE),
            (ResourceKind.TAX, DeletionPolicy.HARD_DELETE),
        ],
    )
    def test_deletion_policies(self, kind: ResourceKind, deletion: DeletionPolicy) -> None:
        assert policy_for(kind).deletion is deletion

    def test_attribute_classes_are_disjoint(self) -> None:
        for policy in map(policy_for, ResourceKind):
            classes = (policy.mutable, policy.create_only, policy.computed)
            sizes = len(policy.identity_key) + sum(map(len, classes))
            assert sizes == len(policy.attributes)

    def test_deactivate_kinds_declare_their_inactive_value(self) -> None:
        for policy in map(policy_for, ResourceKind):
            if policy.deletion is DeletionPolicy.DEACTIVATE:
                assert policy.deactivation is not None
                assert policy.deactivation[0] in policy.mutable

    def test_reference_kinds_run_before_sites(self) -> None:
        site = policy_for("site_settings").priority
        assert policy_for("country").priority < site
        assert policy_for("currency").priority < site

    def test_taxes_run_after_countries(self) -> None:
        assert policy_for("country").priority < policy_for("tax").priority

    def test_lookup_by_value(self) -> None:
        assert policy_for("currency") is policy_for(ResourceKind.CURRENCY)

    def test_unknown_kind(self) -> None:
        with pytest.raises(ValueError):
            policy_for("warehouse")


class TestClassify:
    @pytest.mark.parametrize(
        ("kind", "attribute", "expected"),
        [
            ("country", "code", AttributeClass.IDENTITY),
            ("country", "active", AttributeClass.MUTABLE),
            ("country", "name", AttributeClass.COMPUTED),
            ("country", "regions", AttributeClass.COMPUTED),
            ("currency", "name", AttributeClass.MUTABLE),
            ("site_settings", "home_base", AttributeClass.MUTABLE),
            ("tenant_configuration", "key", AttributeClass.IDENTITY),
            ("tenant_configuration", "version", AttributeClass.COMPUTED),
            ("payment_mode", "payment_provider", AttributeClass.CREATE_ONLY),
            ("payment_mode", "id", AttributeClass.COMPUTED),
            ("tax", "country_code", AttributeClass.IDENTITY),
            ("tax", "tax_classes", AttributeClass.MUTABLE),
        ],
    )
    def test_classification(self, kind: str, attribute: str, expected: AttributeClass) -> None:
        assert classify(kind, attribute) is expected

    def test_unknown_attribute(self) -> None:
        with pytest.raises(UnknownAttributeError, match="symbol") as excinfo:
            classify("currency", "symbol")
        assert excinfo.value.kind == "currency"
        assert excinfo.value.category == "unknown-attribute"


class TestApplyDefaults:
    def test_fills_unset_defaults(self) -> None:
        assert apply_defaults("country", {"code": "US"}) == {"code": "US", "active": True}

    def test_explicit_value_wins(self) -> None:
        assert apply_defaults("country", {"code": "US", "active": False}) == {
            "code": "US",
            "active": False,
        }

    def test_none_counts_as_unset(self) -> None:
        assert apply_defaults("country", {"code": "US", "active": None})["active"] is True

    def test_computed_keys_are_dropped(self) -> None:
        result = apply_defaults("country", {"code": "US", "regions": ["EUROPE"]})
        assert "regions" not in result

    def test_site_defaults(self) -> None:
        result = apply_defaults("site_settings", {"code": "main"})
        assert result == {
            "code": "main",
            "active": True,
            "default": False,
            "tax_calculation_address_type": "BILLING_ADDRESS",
            "decimal_points": 2,
            "cart_calculation_scale": 2,
        }

    def test_input_is_not_modified(self) -> None:
        desired = {"key": "k", "value": 1}
        apply_defaults("tenant_configuration", desired)
        assert desired == {"key": "k", "value": 1}

    def test_is_idempotent(self) -> None:
        once = apply_defaults("site_settings", {"code": "main", "decimal_points": 3})
        assert apply_defaults("site_settings", once) == once

    def test_unknown_attribute(self) -> None:
        with pytest.raises(UnknownAttributeError):
            apply_defaults("currency", {"code": "EUR", "symbol": "€"})


class TestIdentity:
    def test_identity_of(self) -> None:
        assert identity_of("currency", {"code": "EUR", "name": {"en": "Euro"}}) == {"code": "EUR"}

    @pytest.mark.parametrize("attrs", [{}, {"code": ""}, {"code": None}])
    def test_missing_identity(self, attrs: dict) -> None:
        with pytest.raises(MissingIdentityError) as excinfo:
            identity_of("country", attrs)
        assert excinfo.value.missing == ["code"]

    def test_parse_identity(self) -> None:
        assert parse_identity("tenant_configuration", "project_country") == {
            "key": "project_country"
        }

    def test_parse_identity_keeps_slashes_for_single_keys(self) -> None:
        assert parse_identity("tenant_configuration", "a/b") == {"key": "a/b"}

    def test_parse_identity_rejects_empty(self) -> None:
        with pytest.raises(ValueError, match="Invalid import id"):
            parse_identity("country", "")


def test_desired_from_observed_drops_computed_and_unknown() -> None:
    observed = {
        "code": "DE",
        "active": True,
        "name": {"en": "Germany"},
        "regions": ["EUROPE"],
        "metadata": {"version": 3},
    }
    assert desired_from_observed("country", observed) == {"code": "DE", "active": True}
