"""Configuration models for YAML-based provisioning."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, Field, SecretStr, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict

from emporix_provisioner.core.client import DEFAULT_API_URL, DEFAULT_TIMEOUT
from emporix_provisioner.resources.base import Resource  # noqa: TC001
from emporix_provisioner.resources.country import (
    CountryResource,  # noqa: TC001
)
from emporix_provisioner.resources.currency import (
    CurrencyResource,  # noqa: TC001
)
from emporix_provisioner.resources.payment_mode import (
    PaymentModeResource,  # noqa: TC001
)
from emporix_provisioner.resources.site_settings import (
    SiteSettingsResource,  # noqa: TC001
)
from emporix_provisioner.resources.tax import (
    TaxResource,  # noqa: TC001
)
from emporix_provisioner.resources.tenant_configuration import (
    TenantConfigurationResource,  # noqa: TC001
)


class ProviderConfig(BaseSettings):
    """Emporix provider connection settings.

    Fields can be set via YAML (constructor kwargs) or environment variables
    with the ``EMPORIX_`` prefix.  Constructor kwargs take precedence.

    Credentials are either a pre-issued ``access_token`` or ``client_id`` +
    ``client_secret`` for the OAuth2 client-credentials flow.  Secrets are
    typically provided via environment variables rather than YAML to avoid
    committing them to version control.
    """

    model_config = SettingsConfigDict(env_prefix="EMPORIX_")

    tenant: str = Field(min_length=1)
    api_url: str = DEFAULT_API_URL
    access_token: SecretStr | None = None
    client_id: str | None = None
    client_secret: SecretStr | None = None
    scope: str | None = None
    timeout: float = Field(default=DEFAULT_TIMEOUT, gt=0)


def _none_to_list(v: Any) -> Any:
    return v if v is not None else []


class Config(BaseModel):
    """Provisioning configuration; validates YAML structure directly."""

    provider: ProviderConfig
    state_path: Path = Path(".emporix-state.json")
    countries: Annotated[list[CountryResource], BeforeValidator(_none_to_list)] = []
    currencies: Annotated[list[CurrencyResource], BeforeValidator(_none_to_list)] = []
    sites: Annotated[list[SiteSettingsResource], BeforeValidator(_none_to_list)] = []
    tenant_configurations: Annotated[
        list[TenantConfigurationResource],
        BeforeValidator(_none_to_list),
    ] = []
    payment_modes: Annotated[list[PaymentModeResource], BeforeValidator(_none_to_list)] = []
    taxes: Annotated[list[TaxResource], BeforeValidator(_none_to_list)] = []
    config_dir: Path = Path()

    @computed_field  # type: ignore[prop-decorator]
    @property
    def resources(self) -> list[Resource]:
        """All declared resources; ordering is not significant."""
        return [
            *self.countries,
            *self.currencies,
            *self.sites,
            *self.tenant_configurations,
            *self.payment_modes,
            *self.taxes,
        ]
