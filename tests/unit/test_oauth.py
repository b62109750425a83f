from __future__ import annotations

from unittest.mock import MagicMock

import pytest
import requests

from emporix_provisioner.core.client import TransportError
from emporix_provisioner.core.oauth import generate_access_token


def _session(status: int = 200, payload: object = None) -> MagicMock:
    session = MagicMock(spec=requests.Session)
    resp = session.post.return_value
    resp.status_code = status
    resp.text = "body"
    resp.json.return_value = payload if payload is not None else {}
    return session


def test_token_request_form() -> None:
    session = _session(payload={"access_token": "abc", "expires_in": 3599})

    token = generate_access_token(
        "https://api.emporix.io/", "id", "secret", "tenant=t", session=session, timeout=3
    )

    assert token == "abc"
    session.post.assert_called_once_with(
        "https://api.emporix.io/oauth/token",
        data={
            "client_id": "id",
            "client_secret": "secret",
            "grant_type": "client_credentials",
            "scope": "tenant=t",
        },
        headers={"Accept": "application/json"},
        timeout=3,
    )


def test_scope_is_omitted_when_unset() -> None:
    session = _session(payload={"access_token": "abc"})

    generate_access_token("https://api.emporix.io", "id", "secret", session=session)

    assert "scope" not in session.post.call_args.kwargs["data"]


def test_rejected_credentials() -> None:
    session = _session(status=401)

    with pytest.raises(TransportError, match="status 401") as excinfo:
        generate_access_token("https://api.emporix.io", "id", "bad", session=session)
    assert excinfo.value.status_code == 401


def test_missing_token_in_response() -> None:
    session = _session(payload={"token_type": "Bearer"})

    with pytest.raises(TransportError, match="no access token"):
        generate_access_token("https://api.emporix.io", "id", "secret", session=session)


def test_network_failure() -> None:
    session = MagicMock(spec=requests.Session)
    session.post.side_effect = requests.Timeout("slow")

    with pytest.raises(TransportError, match="error making token request"):
        generate_access_token("https://api.emporix.io", "id", "secret", session=session)
