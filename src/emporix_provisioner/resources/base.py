"""Base resource class for Emporix resources."""

from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field, computed_field

from emporix_provisioner.engine.policy import ResourceKind
from emporix_provisioner.resources.markers import api_paths


class Resource(BaseModel):
    """Base class for all Emporix resources.

    Resources are pure data - they define the desired state.
    The reconciler and its remote handlers know how to apply it.
    """

    model_config = ConfigDict(extra="forbid")

    resource_type: ClassVar[str]
    kind: ClassVar[ResourceKind]

    label: str = Field(pattern=r"^[a-zA-Z0-9_]+$")

    def desired_attributes(self) -> dict[str, Any]:
        """Attributes handed to the reconciler; unset optionals are left out."""
        return self.model_dump(include=set(api_paths(type(self))), exclude_none=True)

    @computed_field
    @property
    def address(self) -> str:
        """Unique address for this resource (e.g., 'country.germany')."""
        return f"{self.resource_type}.{self.label}"
