import pytest

from emporix_provisioner.config.registry import default_registry
from emporix_provisioner.engine.country_handler import CountryHandler
from emporix_provisioner.engine.errors import UnknownResourceTypeError
from emporix_provisioner.engine.handlers import RemoteResource
from emporix_provisioner.engine.registry import ResourceTypeRegistry
from emporix_provisioner.resources import CountryResource


def test_registry_register_and_get() -> None:
    registry = ResourceTypeRegistry()
    handler = RemoteResource()

    registry.register(CountryResource, handler)
    reg = registry.get("country")

    assert reg.resource_type == "country"
    assert reg.model is CountryResource
    assert reg.handler is handler


def test_registry_duplicate_registration() -> None:
    registry = ResourceTypeRegistry()
    handler = RemoteResource()

    registry.register(CountryResource, handler)
    with pytest.raises(ValueError):
        registry.register(CountryResource, handler)


def test_registry_unknown_type() -> None:
    registry = ResourceTypeRegistry()
    with pytest.raises(UnknownResourceTypeError):
        registry.get("missing")


def test_default_registry_covers_every_kind() -> None:
    registry = default_registry()

    assert registry.resource_types() == [
        "country",
        "currency",
        "payment_mode",
        "site_settings",
        "tax",
        "tenant_configuration",
    ]
    assert isinstance(registry.get("country").handler, CountryHandler)
