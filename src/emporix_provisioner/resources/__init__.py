"""Emporix resource definitions."""

from emporix_provisioner.resources.base import Resource
from emporix_provisioner.resources.country import CountryResource
from emporix_provisioner.resources.currency import CurrencyResource
from emporix_provisioner.resources.payment_mode import PaymentModeResource
from emporix_provisioner.resources.site_settings import (
    AssistedBuying,
    HomeBase,
    HomeBaseAddress,
    Location,
    SiteSettingsResource,
)
from emporix_provisioner.resources.tax import TaxClass, TaxResource
from emporix_provisioner.resources.tenant_configuration import TenantConfigurationResource

__all__ = [
    "AssistedBuying",
    "CountryResource",
    "CurrencyResource",
    "HomeBase",
    "HomeBaseAddress",
    "Location",
    "PaymentModeResource",
    "Resource",
    "SiteSettingsResource",
    "TaxClass",
    "TaxResource",
    "TenantConfigurationResource",
]
