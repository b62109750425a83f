"""Core infrastructure components for Emporix Provisioner."""

from emporix_provisioner.core.client import (
    ApiError,
    ConflictError,
    EmporixClient,
    NotFoundError,
    TransportError,
)
from emporix_provisioner.core.provider import (
    AccessTokenAuth,
    ClientCredentialsAuth,
    EmporixProvider,
)
from emporix_provisioner.core.state import ResourceInstance, State

__all__ = [
    "AccessTokenAuth",
    "ApiError",
    "ClientCredentialsAuth",
    "ConflictError",
    "EmporixClient",
    "EmporixProvider",
    "NotFoundError",
    "ResourceInstance",
    "State",
    "TransportError",
]
