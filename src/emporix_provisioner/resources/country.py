"""Country resource model."""

from __future__ import annotations

from typing import Annotated, ClassVar

from pydantic import Field

from emporix_provisioner.engine.policy import ResourceKind
from emporix_provisioner.resources.base import Resource
from emporix_provisioner.resources.markers import ApiField


class CountryResource(Resource):
    """A country in the tenant's country list.

    Countries are pre-populated by Emporix: managing one adopts the existing
    record and controls its ``active`` flag.  Destroying it deactivates the
    country instead of deleting it.
    """

    resource_type: ClassVar[str] = "country"
    kind: ClassVar[ResourceKind] = ResourceKind.COUNTRY

    code: Annotated[str, ApiField("code")] = Field(pattern=r"^[A-Z]{2}$")
    active: Annotated[bool, ApiField("active")] = True
