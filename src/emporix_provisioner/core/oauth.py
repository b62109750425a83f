"""OAuth2 client-credentials token acquisition."""

from __future__ import annotations

import logging

import requests

from emporix_provisioner.core.client import DEFAULT_TIMEOUT, TransportError

logger = logging.getLogger(__name__)


def generate_access_token(
    api_url: str,
    client_id: str,
    client_secret: str,
    scope: str | None = None,
    *,
    session: requests.Session | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> str:
    """Exchange client credentials for a bearer token at ``{api_url}/oauth/token``.

    Raises:
        TransportError: If the request fails, is rejected, or returns no token.
    """
    token_url = f"{api_url.rstrip('/')}/oauth/token"
    form = {
        "client_id": client_id,
        "client_secret": client_secret,
        "grant_type": "client_credentials",
    }
    # Scope is only sent when configured.
    if scope:
        form["scope"] = scope

    logger.debug("Requesting OAuth access token from %s", token_url)
    http = session or requests.Session()
    try:
        resp = http.post(
            token_url,
            data=form,
            headers={"Accept": "application/json"},
            timeout=timeout,
        )
    except requests.RequestException as exc:
        raise TransportError(f"error making token request: {exc}") from exc

    if resp.status_code != 200:
        logger.error("OAuth token request failed: status=%d", resp.status_code)
        raise TransportError(
            f"token request failed with status {resp.status_code}: {resp.text}",
            status_code=resp.status_code,
            body=resp.text,
        )

    try:
        payload = resp.json()
    except ValueError as exc:
        raise TransportError(f"error parsing token response: {exc}") from exc

    token = payload.get("access_token")
    if not token:
        raise TransportError("no access token in response")

    logger.debug("Obtained OAuth access token (expires_in=%s)", payload.get("expires_in"))
    return token
