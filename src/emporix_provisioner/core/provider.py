"""Emporix Provider - Connection configuration for an Emporix tenant."""

from functools import cached_property, partial
from typing import Self

from pydantic import BaseModel, ConfigDict, SecretStr

from emporix_provisioner.core.client import DEFAULT_API_URL, DEFAULT_TIMEOUT, EmporixClient
from emporix_provisioner.core.oauth import generate_access_token


class AccessTokenAuth(BaseModel):
    """Pre-issued bearer token."""

    access_token: SecretStr


class ClientCredentialsAuth(BaseModel):
    """OAuth2 client credentials, exchanged for a token on first use."""

    client_id: str
    client_secret: SecretStr
    scope: str | None = None


class EmporixProvider(BaseModel):
    """Connection configuration for an Emporix tenant.

    Provide tenant and auth for real use, or inject a client with
    `from_client` for testing.

    Examples:
        provider = EmporixProvider(
            tenant="mytenant",
            auth=ClientCredentialsAuth(client_id="id", client_secret="secret"),
        )

        provider = EmporixProvider.from_client(fake_client)
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    tenant: str | None = None
    api_url: str = DEFAULT_API_URL
    auth: AccessTokenAuth | ClientCredentialsAuth | None = None
    timeout: float = DEFAULT_TIMEOUT

    # Injected client (for testing)
    _injected_client: EmporixClient | None = None

    @classmethod
    def from_client(cls, client: EmporixClient) -> Self:
        """Create a provider with an injected client."""
        provider = cls.model_construct()
        provider._injected_client = client
        return provider

    @cached_property
    def client(self) -> EmporixClient:
        """Get the Emporix API client."""
        if self._injected_client is not None:
            return self._injected_client

        if not self.tenant or self.auth is None:
            raise ValueError(
                "Either provide tenant+auth, or use EmporixProvider.from_client() "
                "to inject a client"
            )

        if isinstance(self.auth, AccessTokenAuth):
            return EmporixClient(
                self.tenant,
                self.api_url,
                access_token=self.auth.access_token.get_secret_value(),
                timeout=self.timeout,
            )

        token_provider = partial(
            generate_access_token,
            self.api_url,
            self.auth.client_id,
            self.auth.client_secret.get_secret_value(),
            self.auth.scope,
            timeout=self.timeout,
        )
        return EmporixClient(
            self.tenant,
            self.api_url,
            token_provider=token_provider,
            timeout=self.timeout,
        )
