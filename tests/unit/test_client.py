"""Tests for the Emporix HTTP client (session mocked)."""

from __future__ import annotations

from typing import Any
from unittest.mock import MagicMock

import pytest
import requests

from emporix_provisioner.core.client import (
    ConflictError,
    EmporixClient,
    NotFoundError,
    TransportError,
)


def _response(status: int, payload: Any = None, text: str = "") -> MagicMock:
    resp = MagicMock()
    resp.status_code = status
    resp.text = text
    resp.content = b"" if payload is None else b"{}"
    if payload is None:
        resp.json.side_effect = ValueError("no body")
    else:
        resp.json.return_value = payload
    return resp


@pytest.fixture
def session() -> MagicMock:
    return MagicMock(spec=requests.Session)


@pytest.fixture
def client(session: MagicMock) -> EmporixClient:
    return EmporixClient("MyTenant", access_token="tok", session=session, timeout=5)


def _call(session: MagicMock, index: int = 0) -> tuple[tuple[Any, ...], dict[str, Any]]:
    call = session.request.call_args_list[index]
    return call.args, call.kwargs


class TestRequests:
    def test_get_country(self, client: EmporixClient, session: MagicMock) -> None:
        session.request.return_value = _response(200, {"code": "DE", "active": True})

        assert client.get_country("DE") == {"code": "DE", "active": True}

        args, kwargs = _call(session)
        assert args == ("GET", "https://api.emporix.io/country/mytenant/countries/DE")
        assert kwargs["headers"]["Authorization"] == "Bearer tok"
        assert kwargs["headers"]["X-Version"] == "v2"
        assert kwargs["timeout"] == 5

    def test_timeout_override(self, client: EmporixClient, session: MagicMock) -> None:
        session.request.return_value = _response(200, {"code": "EUR"})

        client.get_currency("EUR", timeout=1.5)

        assert _call(session)[1]["timeout"] == 1.5

    def test_update_country_sends_version(
        self, client: EmporixClient, session: MagicMock
    ) -> None:
        session.request.side_effect = [
            _response(200, {"code": "DE", "active": True, "metadata": {"version": 7}}),
            _response(204),
            _response(200, {"code": "DE", "active": False, "metadata": {"version": 8}}),
        ]

        result = client.update_country("DE", {"active": False})

        assert result["active"] is False
        methods = [c.args[0] for c in session.request.call_args_list]
        assert methods == ["GET", "PATCH", "GET"]
        assert _call(session, 1)[1]["json"] == {"active": False, "metadata": {"version": 7}}

    def test_create_currency_reads_back(self, client: EmporixClient, session: MagicMock) -> None:
        session.request.side_effect = [
            _response(201, {"code": "EUR"}),
            _response(200, {"code": "EUR", "name": {"en": "Euro"}}),
        ]

        result = client.create_currency({"code": "EUR", "name": {"en": "Euro"}})

        assert result == {"code": "EUR", "name": {"en": "Euro"}}
        args, kwargs = _call(session)
        assert args == ("POST", "https://api.emporix.io/currency/mytenant/currencies")
        assert kwargs["headers"]["Content-Language"] == "*"

    def test_site_get_expands_mixins(self, client: EmporixClient, session: MagicMock) -> None:
        session.request.return_value = _response(200, {"code": "main"})

        client.get_site("main")

        assert _call(session)[1]["params"] == {"expand": "mixin:*"}

    def test_site_mixins_body(self, client: EmporixClient, session: MagicMock) -> None:
        session.request.return_value = _response(204)

        client.patch_site_mixins("main", {"info": {"a": 1}}, {"info": "https://schema"})

        assert _call(session)[1]["json"] == {
            "mixins": {"info": {"a": 1}},
            "metadata": {"mixins": {"info": "https://schema"}},
        }

    def test_tenant_configuration_create_sends_list(
        self, client: EmporixClient, session: MagicMock
    ) -> None:
        session.request.return_value = _response(201, [{"key": "k", "value": 1, "version": 1}])

        assert client.create_tenant_configuration({"key": "k", "value": 1}) == {
            "key": "k",
            "value": 1,
            "version": 1,
        }
        assert _call(session)[1]["json"] == [{"key": "k", "value": 1}]

    def test_tenant_configuration_create_empty_array(
        self, client: EmporixClient, session: MagicMock
    ) -> None:
        session.request.return_value = _response(201, [])

        with pytest.raises(TransportError, match="empty array"):
            client.create_tenant_configuration({"key": "k", "value": 1})

    def test_tenant_configuration_update_carries_version(
        self, client: EmporixClient, session: MagicMock
    ) -> None:
        session.request.side_effect = [
            _response(200, {"key": "k", "value": 1, "secured": True, "version": 4}),
            _response(200, {"key": "k", "value": 2, "secured": True, "version": 5}),
        ]

        client.update_tenant_configuration("k", {"value": 2})

        assert _call(session, 1)[1]["json"] == {
            "key": "k",
            "value": 2,
            "secured": True,
            "version": 4,
        }

    def test_payment_mode_update_reads_back(
        self, client: EmporixClient, session: MagicMock
    ) -> None:
        session.request.side_effect = [
            _response(200, {"id": "u-1", "code": "card", "active": True}),
            _response(200, {"id": "u-1", "code": "card", "active": False}),
        ]

        result = client.update_payment_mode("u-1", {"active": False, "configuration": {}})

        assert result["active"] is False
        args, kwargs = _call(session)
        assert args == (
            "PUT",
            "https://api.emporix.io/payment-gateway/mytenant/paymentmodes/config/u-1",
        )
        assert kwargs["json"] == {"active": False, "configuration": {}}
        assert _call(session, 1)[0][0] == "GET"

    def test_tax_update_sends_version_and_location(
        self, client: EmporixClient, session: MagicMock
    ) -> None:
        classes = [{"code": "STANDARD", "name": {"en": "Standard"}, "rate": 19.0}]
        session.request.side_effect = [
            _response(200, {"location": {"countryCode": "DE"}, "metadata": {"version": 3}}),
            _response(204),
            _response(200, {"location": {"countryCode": "DE"}, "taxClasses": classes}),
        ]

        client.update_tax("DE", {"taxClasses": classes})

        args, kwargs = _call(session, 1)
        assert args == ("PUT", "https://api.emporix.io/tax/mytenant/taxes/DE")
        assert kwargs["json"] == {
            "location": {"countryCode": "DE"},
            "taxClasses": classes,
            "metadata": {"version": 3},
        }

    def test_tax_create_reads_back_by_country(
        self, client: EmporixClient, session: MagicMock
    ) -> None:
        session.request.side_effect = [
            _response(201, {"countryCode": "AT"}),
            _response(200, {"location": {"countryCode": "AT"}, "taxClasses": []}),
        ]

        client.create_tax({"location": {"countryCode": "AT"}, "taxClasses": []})

        assert _call(session, 1)[0] == ("GET", "https://api.emporix.io/tax/mytenant/taxes/AT")


class TestDeadlines:
    def test_each_request_gets_the_time_left(
        self, client: EmporixClient, session: MagicMock, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        clock = iter([100.0, 104.0, 109.0])
        monkeypatch.setattr("emporix_provisioner.core.client.time.monotonic", lambda: next(clock))
        session.request.side_effect = [
            _response(200, {"code": "DE", "active": True}),
            _response(204),
            _response(200, {"code": "DE", "active": False}),
        ]

        client.update_country("DE", {"active": False}, deadline=110.0)

        timeouts = [c.kwargs["timeout"] for c in session.request.call_args_list]
        assert timeouts == [10.0, 6.0, 1.0]

    def test_expired_deadline_stops_before_the_next_request(
        self, client: EmporixClient, session: MagicMock, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        clock = iter([100.0, 111.0])
        monkeypatch.setattr("emporix_provisioner.core.client.time.monotonic", lambda: next(clock))
        session.request.return_value = _response(200, {"code": "EUR", "name": {"en": "Euro"}})

        with pytest.raises(TransportError, match="deadline exceeded"):
            client.update_currency("EUR", {"name": {"en": "Euro"}}, deadline=110.0)

        assert [c.args[0] for c in session.request.call_args_list] == ["GET"]

    def test_without_deadline_the_client_default_applies(
        self, client: EmporixClient, session: MagicMock
    ) -> None:
        session.request.side_effect = [
            _response(200, {"key": "k", "value": 1, "version": 1}),
            _response(200, {"key": "k", "value": 2, "version": 2}),
        ]

        client.update_tenant_configuration("k", {"value": 2})

        assert [c.kwargs["timeout"] for c in session.request.call_args_list] == [5, 5]


class TestErrors:
    def test_not_found(self, client: EmporixClient, session: MagicMock) -> None:
        session.request.return_value = _response(404, text="missing")

        with pytest.raises(NotFoundError) as excinfo:
            client.get_currency("XXX")
        assert excinfo.value.status_code == 404

    def test_conflict(self, client: EmporixClient, session: MagicMock) -> None:
        session.request.return_value = _response(409, text="exists")

        with pytest.raises(ConflictError):
            client.create_currency({"code": "EUR"})

    def test_unexpected_status(self, client: EmporixClient, session: MagicMock) -> None:
        session.request.return_value = _response(500, text="boom")

        with pytest.raises(TransportError, match="unexpected status code: 500") as excinfo:
            client.delete_currency("EUR")
        assert excinfo.value.body == "boom"

    def test_network_failure(self, client: EmporixClient, session: MagicMock) -> None:
        session.request.side_effect = requests.ConnectionError("refused")

        with pytest.raises(TransportError, match="refused"):
            client.get_site("main")

    def test_undecodable_body(self, client: EmporixClient, session: MagicMock) -> None:
        session.request.return_value = _response(200)

        with pytest.raises(TransportError, match="error decoding response"):
            client.get_site("main")


class TestAuth:
    def test_requires_credentials(self) -> None:
        with pytest.raises(ValueError, match="access_token or token_provider"):
            EmporixClient("t")

    def test_token_provider_is_called_once(self, session: MagicMock) -> None:
        token_provider = MagicMock(return_value="fresh")
        client = EmporixClient("t", token_provider=token_provider, session=session)
        session.request.return_value = _response(200, {"code": "DE"})

        token_provider.assert_not_called()
        client.get_country("DE")
        client.get_country("DE")

        token_provider.assert_called_once_with()
        assert _call(session)[1]["headers"]["Authorization"] == "Bearer fresh"

    def test_api_url_trailing_slash(self, session: MagicMock) -> None:
        client = EmporixClient("t", "https://api.example.com/", access_token="x", session=session)
        session.request.return_value = _response(200, {"code": "DE"})

        client.get_country("DE")

        assert _call(session)[0][1] == "https://api.example.com/country/t/countries/DE"
