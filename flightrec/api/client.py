"""HTTP client for the analysis engine's public API."""

from __future__ import annotations

import json
import platform
from email.utils import parseaddr
from typing import Any, Iterable, Optional, Sequence, TypeVar

import requests

from flightrec.api.events import (
    AccountStatusResponse,
    AlertsResponse,
    DNSEntry,
    EventsResponse,
    HTTPEntry,
    IPEntry,
    TLSEntry,
)

VERSION = "0.0.0"
DEFAULT_VERSION = "v1"
DEFAULT_USER_AGENT = "AlphaSOC NFR/" + VERSION.lstrip("v")

_ACCOUNT_STATUS_TIMEOUT = 3.0

_ARCH_NAMES = {"x86_64": "amd64", "amd64": "amd64", "aarch64": "arm64", "arm64": "arm64", "i386": "386", "i686": "386"}

_Model = TypeVar("_Model")


class ApiError(Exception):
    """An API call failed."""


class NoAPIKeyError(ApiError):
    """A call that needs an API key was made without one."""

    def __init__(self, message: str = "no api key") -> None:
        super().__init__(message)


class NoRequestError(ApiError):
    """A call was made with an empty request."""

    def __init__(self, message: str = "request is empty") -> None:
        super().__init__(message)


class TooManyRequestsError(ApiError):
    """The API answered 429 Too Many Requests."""

    def __init__(self, message: str = "too many requests to API") -> None:
        super().__init__(message)


def _parse_email(text: str) -> str:
    _, address = parseaddr(text)
    local, at, domain = address.rpartition("@")
    if not address or not at or not local or not domain or any(c.isspace() for c in address):
        raise ValueError(f"invalid email: {text!r} is not a valid address")
    return address


def _ndjson(entries: Iterable[Any]) -> bytes:
    return b"".join(json.dumps(entry.to_dict()).encode() + b"\n" for entry in entries)


def _platform_name() -> str:
    system = platform.system().lower() or "unknown"
    machine = platform.machine().lower()
    return f"nfr-{system}-{_ARCH_NAMES.get(machine, machine or 'unknown')}"


class AlphaSOCClient:
    """Client for the engine API at a given host, authenticated by an API key."""

    def __init__(self, host: str, key: str) -> None:
        self.host = host.removesuffix("/")
        self.key = key
        self.version = DEFAULT_VERSION
        self._session = requests.Session()

    def _api_url(self, path: str) -> str:
        return f"{self.host}/{self.version}/{path}"

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[dict[str, str]] = None,
        body: Optional[bytes] = None,
        timeout: Optional[float] = None,
    ) -> requests.Response:
        url = self._api_url(path)
        headers = {"User-Agent": DEFAULT_USER_AGENT}
        if body is not None:
            headers["Content-Type"] = "application/json"
        auth = (self.key, "") if self.key else None
        try:
            response = self._session.request(
                method, url, params=params, data=body, headers=headers, auth=auth, timeout=timeout
            )
        except requests.Timeout as exc:
            raise ApiError(f"{method} {url} i/o timeout") from exc
        except requests.RequestException as exc:
            raise ApiError(str(exc)) from exc

        if response.status_code != 200:
            if response.status_code == 429:
                raise TooManyRequestsError()
            try:
                payload = json.loads(response.text)
            except ValueError as exc:
                raise ApiError(f"invalid error response (status {response.status_code}): {exc}") from exc
            if not isinstance(payload, dict):
                raise ApiError(f"invalid error response (status {response.status_code})")
            raise ApiError(str(payload.get("message") or ""))
        return response

    def _post(self, path: str, payload: Any, *, params: Optional[dict[str, str]] = None) -> requests.Response:
        body = payload if isinstance(payload, bytes) else json.dumps(payload).encode() + b"\n"
        return self._request("POST", path, params=params, body=body)

    @staticmethod
    def _decode(response: requests.Response, model: type[_Model]) -> _Model:
        try:
            return model.from_dict(json.loads(response.text))  # type: ignore[attr-defined]
        except (ValueError, TypeError) as exc:
            raise ApiError(f"json decoding error: {exc}") from exc

    def check_key(self) -> None:
        """Raise if the client has no valid API key."""
        self.account_status()

    def account_register(self, name: str, email: str) -> None:
        """Register a new account with a name and an e-mail address."""
        if not name:
            raise ValueError("name is required to register account")
        if not email:
            raise ValueError("email is required to register account")
        address = _parse_email(email)
        self._post("account/register", {"details": {"name": name, "email": address}})

    def account_status(self) -> AccountStatusResponse:
        """Return the status of the account behind the API key."""
        if not self.key:
            raise NoAPIKeyError()
        response = self._request("GET", "account/status", timeout=_ACCOUNT_STATUS_TIMEOUT)
        return self._decode(response, AccountStatusResponse)

    def alerts(self, follow: str) -> AlertsResponse:
        """Return alerts, starting after the ``follow`` marker when one is given."""
        if not self.key:
            raise NoAPIKeyError()
        params = {"follow": follow} if follow else None
        response = self._request("GET", "alerts", params=params)
        return self._decode(response, AlertsResponse)

    def _send_events(self, path: str, entries: Sequence[Any]) -> EventsResponse:
        response = self._post(path, _ndjson(entries))
        return self._decode(response, EventsResponse)

    def events_dns(self, entries: Optional[Sequence[DNSEntry]]) -> EventsResponse:
        """Send DNS queries for analysis."""
        if not self.key:
            raise NoAPIKeyError()
        if entries is None:
            raise NoRequestError()
        return self._send_events("events/dns", entries)

    def events_ip(self, entries: Optional[Sequence[IPEntry]]) -> EventsResponse:
        """Send IP connections for analysis."""
        if not self.key:
            raise NoAPIKeyError()
        if entries is None:
            raise NoRequestError()
        return self._send_events("events/ip", entries)

    def events_http(self, entries: Optional[Sequence[HTTPEntry]]) -> EventsResponse:
        """Send HTTP requests for analysis."""
        if not self.key:
            raise NoAPIKeyError()
        if not entries:
            raise NoRequestError()
        return self._send_events("events/http", entries)

    def events_tls(self, entries: Optional[Sequence[TLSEntry]]) -> EventsResponse:
        """Send TLS handshakes for analysis."""
        if not self.key:
            raise NoAPIKeyError()
        if not entries:
            raise NoRequestError()
        return self._send_events("events/tls", entries)

    def key_request(self) -> str:
        """Request a new API key and return it."""
        response = self._post("key/request", {"platform": {"name": _platform_name()}, "token": ""})
        try:
            payload = json.loads(response.text)
        except ValueError as exc:
            raise ApiError(f"json decoding error: {exc}") from exc
        if not isinstance(payload, dict):
            raise ApiError("json decoding error: expected a JSON object")
        return str(payload.get("key") or "")

    def key_reset(self, email: Optional[str]) -> None:
        """Ask for the API key tied to an e-mail address to be reset."""
        self._post("key/reset", {"email": email})