"""Currency resource model."""

from __future__ import annotations

from typing import Annotated, ClassVar

from pydantic import Field

from emporix_provisioner.engine.policy import ResourceKind
from emporix_provisioner.resources.base import Resource
from emporix_provisioner.resources.markers import ApiField


class CurrencyResource(Resource):
    """A currency, keyed by its ISO-4217 code.

    ``name`` maps language codes to localized names, e.g.
    ``{"en": "Euro", "de": "Euro"}``.
    """

    resource_type: ClassVar[str] = "currency"
    kind: ClassVar[ResourceKind] = ResourceKind.CURRENCY

    code: Annotated[str, ApiField("code")] = Field(pattern=r"^[A-Z]{3}$")
    name: Annotated[dict[str, str], ApiField("name")] = Field(min_length=1)
