"""Site settings resource model."""

from __future__ import annotations

from typing import Annotated, Any, ClassVar, Literal

from pydantic import BaseModel, ConfigDict, Field

from emporix_provisioner.engine.policy import ResourceKind
from emporix_provisioner.resources.base import Resource
from emporix_provisioner.resources.markers import ApiField

TaxCalculationAddressType = Literal["BILLING_ADDRESS", "SHIPPING_ADDRESS"]


class HomeBaseAddress(BaseModel):
    model_config = ConfigDict(extra="forbid")

    street: str | None = None
    street_number: str | None = None
    zip_code: str | None = None
    city: str | None = None
    country: str = Field(pattern=r"^[A-Z]{2}$")
    state: str | None = None


class Location(BaseModel):
    model_config = ConfigDict(extra="forbid")

    latitude: float
    longitude: float


class HomeBase(BaseModel):
    """Address and geo location the site ships from."""

    model_config = ConfigDict(extra="forbid")

    address: HomeBaseAddress | None = None
    location: Location | None = None


class AssistedBuying(BaseModel):
    model_config = ConfigDict(extra="forbid")

    storefront_url: str | None = None


class SiteSettingsResource(Resource):
    """Settings of an existing site (e.g. ``main``).

    Sites are never created or deleted by the provisioner: the record is
    adopted on create, patched on update and released untouched on destroy.

    Mixins are keyed by mixin name; ``mixin_schemas`` maps the same names to
    the schema URLs the API validates them against.
    """

    resource_type: ClassVar[str] = "site_settings"
    kind: ClassVar[ResourceKind] = ResourceKind.SITE_SETTINGS

    code: Annotated[str, ApiField("code")] = Field(min_length=1)
    name: Annotated[str | None, ApiField("name")] = None
    active: Annotated[bool, ApiField("active")] = True
    default: Annotated[bool, ApiField("default")] = False
    includes_tax: Annotated[bool | None, ApiField("includesTax")] = None
    default_language: Annotated[str | None, ApiField("defaultLanguage")] = None
    languages: Annotated[list[str] | None, ApiField("languages")] = None
    currency: Annotated[str | None, ApiField("currency")] = None
    available_currencies: Annotated[list[str] | None, ApiField("availableCurrencies")] = None
    ship_to_countries: Annotated[list[str] | None, ApiField("shipToCountries")] = None
    tax_calculation_address_type: Annotated[
        TaxCalculationAddressType, ApiField("taxCalculationAddressType")
    ] = "BILLING_ADDRESS"
    decimal_points: Annotated[int, ApiField("decimalPoints")] = Field(default=2, ge=0)
    cart_calculation_scale: Annotated[int, ApiField("cartCalculationScale")] = Field(
        default=2, ge=0
    )
    home_base: Annotated[HomeBase | None, ApiField("homeBase")] = None
    assisted_buying: Annotated[AssistedBuying | None, ApiField("assistedBuying")] = None
    mixins: Annotated[dict[str, dict[str, Any]] | None, ApiField("mixins")] = None
    mixin_schemas: Annotated[dict[str, str] | None, ApiField("metadata.mixins")] = None
