"""Tenant configuration resource model."""

from __future__ import annotations

from typing import Annotated, ClassVar

from pydantic import Field, JsonValue

from emporix_provisioner.engine.policy import ResourceKind
from emporix_provisioner.resources.base import Resource
from emporix_provisioner.resources.markers import ApiField


class TenantConfigurationResource(Resource):
    """A key/value entry of the tenant configuration service.

    ``value`` is any JSON value and is sent to the API as-is.
    """

    resource_type: ClassVar[str] = "tenant_configuration"
    kind: ClassVar[ResourceKind] = ResourceKind.TENANT_CONFIGURATION

    key: Annotated[str, ApiField("key")] = Field(min_length=1)
    value: Annotated[JsonValue, ApiField("value")]
    secured: Annotated[bool, ApiField("secured")] = False
