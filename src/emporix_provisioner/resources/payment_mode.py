"""Payment mode resource model."""

from __future__ import annotations

from typing import Annotated, ClassVar, Literal

from pydantic import Field

from emporix_provisioner.engine.policy import ResourceKind
from emporix_provisioner.resources.base import Resource
from emporix_provisioner.resources.markers import ApiField

PaymentProvider = Literal["INVOICE", "CASH_ON_DELIVERY", "SPREEDLY", "SPREEDLY_SAFERPAY", "UNZER"]


class PaymentModeResource(Resource):
    """A payment mode of the payment gateway, keyed by its code.

    The API addresses payment modes by a generated id, which is read back as a
    computed attribute.  ``payment_provider`` cannot be changed in place.
    ``configuration`` holds the provider's string settings.
    """

    resource_type: ClassVar[str] = "payment_mode"
    kind: ClassVar[ResourceKind] = ResourceKind.PAYMENT_MODE

    code: Annotated[str, ApiField("code")] = Field(min_length=1)
    active: Annotated[bool, ApiField("active")] = True
    payment_provider: Annotated[PaymentProvider, ApiField("provider")]
    configuration: Annotated[dict[str, str] | None, ApiField("configuration")] = None
