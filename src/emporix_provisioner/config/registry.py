"""Default resource type registry factory."""

from __future__ import annotations

from emporix_provisioner.engine.country_handler import CountryHandler
from emporix_provisioner.engine.currency_handler import CurrencyHandler
from emporix_provisioner.engine.payment_mode_handler import PaymentModeHandler
from emporix_provisioner.engine.registry import ResourceTypeRegistry
from emporix_provisioner.engine.site_settings_handler import SiteSettingsHandler
from emporix_provisioner.engine.tax_handler import TaxHandler
from emporix_provisioner.engine.tenant_configuration_handler import TenantConfigurationHandler
from emporix_provisioner.resources.country import CountryResource
from emporix_provisioner.resources.currency import CurrencyResource
from emporix_provisioner.resources.payment_mode import PaymentModeResource
from emporix_provisioner.resources.site_settings import SiteSettingsResource
from emporix_provisioner.resources.tax import TaxResource
from emporix_provisioner.resources.tenant_configuration import TenantConfigurationResource


def default_registry() -> ResourceTypeRegistry:
    """Create a fresh registry with all built-in resource types and handlers."""
    registry = ResourceTypeRegistry()
    registry.register(CountryResource, CountryHandler())
    registry.register(CurrencyResource, CurrencyHandler())
    registry.register(SiteSettingsResource, SiteSettingsHandler())
    registry.register(TenantConfigurationResource, TenantConfigurationHandler())
    registry.register(PaymentModeResource, PaymentModeHandler())
    registry.register(TaxResource, TaxHandler())
    return registry
