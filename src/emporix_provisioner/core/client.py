"""HTTP client for the Emporix management API."""

from __future__ import annotations

import logging
import threading
import time
from typing import TYPE_CHECKING, Any

import requests

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.emporix.io"
DEFAULT_TIMEOUT = 30.0


class ApiError(Exception):
    """Base exception for failures reported by (or on the way to) the API."""

    def __init__(self, message: str, *, status_code: int | None = None, body: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class NotFoundError(ApiError):
    """The requested record does not exist (HTTP 404)."""


class ConflictError(ApiError):
    """The record already exists (HTTP 409)."""


class TransportError(ApiError):
    """Network, authentication, decoding, or unexpected-status failure."""


class EmporixClient:
    """Thin wrapper over the Emporix REST endpoints used by the provisioner.

    Every method maps one remote call (plus the version lookups the API
    requires for optimistic locking) and returns decoded JSON records.
    ``timeout`` overrides the client default for a single call.  Methods that
    issue several requests take an absolute ``deadline`` (a ``time.monotonic()``
    value) instead and give each request the time left at that point.

    The client is safe to share between threads: ``requests.Session`` is used
    for stateless calls and token acquisition is guarded by a lock.
    """

    def __init__(
        self,
        tenant: str,
        api_url: str = DEFAULT_API_URL,
        *,
        access_token: str | None = None,
        token_provider: Callable[[], str] | None = None,
        session: requests.Session | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        if access_token is None and token_provider is None:
            raise ValueError("Either access_token or token_provider is required")
        self.tenant = tenant
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self._access_token = access_token
        self._token_provider = token_provider
        self._token_lock = threading.Lock()
        self._session = session or requests.Session()

    @property
    def access_token(self) -> str:
        with self._token_lock:
            if self._access_token is None:
                assert self._token_provider is not None
                self._access_token = self._token_provider()
            return self._access_token

    def _path(self, service: str, *parts: str) -> str:
        return "/".join([f"/{service}", self.tenant.lower(), *parts])

    def _request(
        self,
        method: str,
        path: str,
        *,
        expected: Iterable[int],
        body: Any = None,
        headers: Mapping[str, str] | None = None,
        params: Mapping[str, str] | None = None,
        timeout: float | None = None,
    ) -> requests.Response:
        url = f"{self.api_url}{path}"
        request_headers = {
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": "application/json",
            "Accept": "*/*",
            **(headers or {}),
        }
        logger.debug("API request: %s %s", method, url)
        try:
            resp = self._session.request(
                method,
                url,
                json=body,
                headers=request_headers,
                params=params,
                timeout=timeout if timeout is not None else self.timeout,
            )
        except requests.RequestException as exc:
            raise TransportError(f"{method} {url} failed: {exc}") from exc
        logger.debug("API response: %s %s -> %d", method, url, resp.status_code)

        if resp.status_code == 404:
            raise NotFoundError(f"{method} {url}: not found", status_code=404, body=resp.text)
        if resp.status_code == 409:
            raise ConflictError(f"{method} {url}: already exists", status_code=409, body=resp.text)
        if resp.status_code not in set(expected):
            raise TransportError(
                f"unexpected status code: {resp.status_code}, body: {resp.text}",
                status_code=resp.status_code,
                body=resp.text,
            )
        return resp

    @staticmethod
    def _time_left(deadline: float | None) -> float | None:
        if deadline is None:
            return None
        left = deadline - time.monotonic()
        if left <= 0:
            raise TransportError("deadline exceeded before request")
        return left

    @staticmethod
    def _decode(resp: requests.Response) -> Any:
        try:
            return resp.json()
        except ValueError as exc:
            raise TransportError(f"error decoding response: {exc}", body=resp.text) from exc

    @staticmethod
    def _with_version(payload: dict[str, Any], current: Mapping[str, Any]) -> dict[str, Any]:
        """Attach ``metadata.version`` from *current*; the API rejects writes without it."""
        version = (current.get("metadata") or {}).get("version")
        if version:
            metadata = dict(payload.get("metadata") or {})
            metadata["version"] = version
            payload = {**payload, "metadata": metadata}
        return payload

    # ── Countries ───────────────────────────────────────────────────

    def get_country(self, code: str, *, timeout: float | None = None) -> dict[str, Any]:
        resp = self._request(
            "GET",
            self._path("country", "countries", code),
            expected=(200,),
            headers={"X-Version": "v2"},
            timeout=timeout,
        )
        return self._decode(resp)

    def update_country(
        self, code: str, changes: Mapping[str, Any], *, deadline: float | None = None
    ) -> dict[str, Any]:
        current = self.get_country(code, timeout=self._time_left(deadline))
        self._request(
            "PATCH",
            self._path("country", "countries", code),
            expected=(204,),
            body=self._with_version(dict(changes), current),
            headers={"X-Version": "v2"},
            timeout=self._time_left(deadline),
        )
        # PATCH answers 204 without a body.
        return self.get_country(code, timeout=self._time_left(deadline))

    # ── Currencies ──────────────────────────────────────────────────

    def create_currency(
        self, payload: Mapping[str, Any], *, deadline: float | None = None
    ) -> dict[str, Any]:
        resp = self._request(
            "POST",
            self._path("currency", "currencies"),
            expected=(201,),
            body=dict(payload),
            headers={"Content-Language": "*"},
            timeout=self._time_left(deadline),
        )
        created = self._decode(resp) if resp.content else {}
        code = created.get("code") or payload["code"]
        # The create response omits translations; read the full record.
        return self.get_currency(code, timeout=self._time_left(deadline))

    def get_currency(self, code: str, *, timeout: float | None = None) -> dict[str, Any]:
        resp = self._request(
            "GET",
            self._path("currency", "currencies", code),
            expected=(200,),
            headers={"Accept-Language": "*"},
            timeout=timeout,
        )
        return self._decode(resp)

    def update_currency(
        self, code: str, changes: Mapping[str, Any], *, deadline: float | None = None
    ) -> dict[str, Any]:
        current = self.get_currency(code, timeout=self._time_left(deadline))
        payload = {"name": changes.get("name", current.get("name") or {})}
        self._request(
            "PUT",
            self._path("currency", "currencies", code),
            expected=(204,),
            body=self._with_version(payload, current),
            headers={"Content-Language": "*"},
            timeout=self._time_left(deadline),
        )
        return self.get_currency(code, timeout=self._time_left(deadline))

    def delete_currency(self, code: str, *, timeout: float | None = None) -> None:
        self._request(
            "DELETE",
            self._path("currency", "currencies", code),
            expected=(204,),
            timeout=timeout,
        )

    # ── Sites ───────────────────────────────────────────────────────

    def get_site(self, code: str, *, timeout: float | None = None) -> dict[str, Any]:
        resp = self._request(
            "GET",
            self._path("site", "sites", code),
            expected=(200,),
            params={"expand": "mixin:*"},
            timeout=timeout,
        )
        return self._decode(resp)

    def update_site(
        self, code: str, changes: Mapping[str, Any], *, timeout: float | None = None
    ) -> None:
        self._request(
            "PATCH",
            self._path("site", "sites", code),
            expected=(200, 204),
            body=dict(changes),
            timeout=timeout,
        )

    def patch_site_mixins(
        self,
        code: str,
        mixins: Mapping[str, Any],
        schemas: Mapping[str, str] | None = None,
        *,
        timeout: float | None = None,
    ) -> None:
        body: dict[str, Any] = {"mixins": dict(mixins)}
        # Only metadata.mixins is sent; metadata.version is owned by the API.
        if schemas:
            body["metadata"] = {"mixins": dict(schemas)}
        self._request(
            "PATCH",
            self._path("site", "sites", code),
            expected=(200, 204),
            body=body,
            timeout=timeout,
        )

    def delete_site_mixin(self, code: str, mixin: str, *, timeout: float | None = None) -> None:
        self._request(
            "DELETE",
            self._path("site", "sites", code, "mixins", mixin),
            expected=(200, 204),
            timeout=timeout,
        )

    # ── Tenant configurations ───────────────────────────────────────

    def create_tenant_configuration(
        self, payload: Mapping[str, Any], *, timeout: float | None = None
    ) -> dict[str, Any]:
        resp = self._request(
            "POST",
            self._path("configuration", "configurations"),
            expected=(201,),
            body=[dict(payload)],
            timeout=timeout,
        )
        created = self._decode(resp)
        if not created:
            raise TransportError("API returned empty array", status_code=resp.status_code)
        return created[0]

    def get_tenant_configuration(
        self, key: str, *, timeout: float | None = None
    ) -> dict[str, Any]:
        resp = self._request(
            "GET",
            self._path("configuration", "configurations", key),
            expected=(200,),
            timeout=timeout,
        )
        return self._decode(resp)

    def update_tenant_configuration(
        self, key: str, changes: Mapping[str, Any], *, deadline: float | None = None
    ) -> dict[str, Any]:
        # PUT replaces the record and needs the current version for locking.
        current = self.get_tenant_configuration(key, timeout=self._time_left(deadline))
        payload = {
            "key": key,
            "value": changes.get("value", current.get("value")),
            "secured": changes.get("secured", current.get("secured", False)),
            "version": current.get("version"),
        }
        resp = self._request(
            "PUT",
            self._path("configuration", "configurations", key),
            expected=(200,),
            body=payload,
            timeout=self._time_left(deadline),
        )
        return self._decode(resp)

    def delete_tenant_configuration(self, key: str, *, timeout: float | None = None) -> None:
        self._request(
            "DELETE",
            self._path("configuration", "configurations", key),
            expected=(204,),
            timeout=timeout,
        )

    # ── Payment modes ───────────────────────────────────────────────

    def list_payment_modes(self, *, timeout: float | None = None) -> list[dict[str, Any]]:
        resp = self._request(
            "GET",
            self._path("payment-gateway", "paymentmodes", "config"),
            expected=(200,),
            timeout=timeout,
        )
        return self._decode(resp)

    def create_payment_mode(
        self, payload: Mapping[str, Any], *, timeout: float | None = None
    ) -> dict[str, Any]:
        resp = self._request(
            "POST",
            self._path("payment-gateway", "paymentmodes", "config"),
            expected=(200, 201),
            body=dict(payload),
            timeout=timeout,
        )
        return self._decode(resp)

    def get_payment_mode(self, mode_id: str, *, timeout: float | None = None) -> dict[str, Any]:
        resp = self._request(
            "GET",
            self._path("payment-gateway", "paymentmodes", "config", mode_id),
            expected=(200,),
            timeout=timeout,
        )
        return self._decode(resp)

    def update_payment_mode(
        self, mode_id: str, changes: Mapping[str, Any], *, deadline: float | None = None
    ) -> dict[str, Any]:
        self._request(
            "PUT",
            self._path("payment-gateway", "paymentmodes", "config", mode_id),
            expected=(200, 204),
            body=dict(changes),
            timeout=self._time_left(deadline),
        )
        # The PUT response can carry the record as it was before the update.
        return self.get_payment_mode(mode_id, timeout=self._time_left(deadline))

    def delete_payment_mode(self, mode_id: str, *, timeout: float | None = None) -> None:
        self._request(
            "DELETE",
            self._path("payment-gateway", "paymentmodes", "config", mode_id),
            expected=(200, 204),
            timeout=timeout,
        )

    # ── Taxes ───────────────────────────────────────────────────────

    def create_tax(
        self, payload: Mapping[str, Any], *, deadline: float | None = None
    ) -> dict[str, Any]:
        self._request(
            "POST",
            self._path("tax", "taxes"),
            expected=(201,),
            body=dict(payload),
            timeout=self._time_left(deadline),
        )
        # The create response only carries the country code.
        code = payload["location"]["countryCode"]
        return self.get_tax(code, timeout=self._time_left(deadline))

    def get_tax(self, country_code: str, *, timeout: float | None = None) -> dict[str, Any]:
        resp = self._request(
            "GET",
            self._path("tax", "taxes", country_code),
            expected=(200,),
            timeout=timeout,
        )
        return self._decode(resp)

    def update_tax(
        self, country_code: str, changes: Mapping[str, Any], *, deadline: float | None = None
    ) -> dict[str, Any]:
        current = self.get_tax(country_code, timeout=self._time_left(deadline))
        payload = {
            "location": {"countryCode": country_code},
            "taxClasses": changes.get("taxClasses", current.get("taxClasses") or []),
        }
        self._request(
            "PUT",
            self._path("tax", "taxes", country_code),
            expected=(200, 204),
            body=self._with_version(payload, current),
            timeout=self._time_left(deadline),
        )
        return self.get_tax(country_code, timeout=self._time_left(deadline))

    def delete_tax(self, country_code: str, *, timeout: float | None = None) -> None:
        self._request(
            "DELETE",
            self._path("tax", "taxes", country_code),
            expected=(204,),
            timeout=timeout,
        )
