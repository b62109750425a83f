"""Tax configuration resource model."""

from __future__ import annotations

from typing import Annotated, ClassVar, Self

from pydantic import BaseModel, ConfigDict, Field, model_validator

from emporix_provisioner.engine.policy import ResourceKind
from emporix_provisioner.resources.base import Resource
from emporix_provisioner.resources.markers import ApiField


class TaxClass(BaseModel):
    """One rate of a country's tax configuration (e.g. ``STANDARD`` at 19%)."""

    model_config = ConfigDict(extra="forbid")

    code: str = Field(min_length=1)
    name: dict[str, str] = Field(min_length=1)
    rate: float = Field(ge=0)
    description: dict[str, str] | None = None
    order: int | None = None
    is_default: bool = False


class TaxResource(Resource):
    """Tax classes of one country, keyed by its ISO-3166 code.

    The tax classes are replaced as a whole on update.  At most one of them
    may be the default.
    """

    resource_type: ClassVar[str] = "tax"
    kind: ClassVar[ResourceKind] = ResourceKind.TAX

    country_code: Annotated[str, ApiField("location.countryCode")] = Field(pattern=r"^[A-Z]{2}$")
    tax_classes: Annotated[list[TaxClass], ApiField("taxClasses")] = Field(min_length=1)

    @model_validator(mode="after")
    def _single_default(self) -> Self:
        defaults = [tc.code for tc in self.tax_classes if tc.is_default]
        if len(defaults) > 1:
            raise ValueError(f"At most one default tax class allowed, got: {', '.join(defaults)}")
        return self
