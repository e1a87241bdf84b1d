"""Thin requests wrapper used by every poller.

Adds the base URL, a bounded timeout, the TLS verification choice and the
auth headers to each call, and maps requests failures onto the error
taxonomy in core.errors.
"""

import logging
from typing import Any, Container, Dict, Optional

import requests

from config import REQUEST_TIMEOUT, USER_AGENT
from core.errors import DecodeError, HTTPStatusError, TransportError

logger = logging.getLogger(__name__)

OK_STATUSES = (200,)

_insecure_warned = set()


def join_url(base_url: str, path: str) -> str:
    """Join a service base URL and a relative API path."""
    base = base_url.rstrip("/")
    path = path.lstrip("/")
    return f"{base}/{path}" if path else base + "/"


class HTTPClient:
    """One upstream service: base URL + auth + timeout + TLS policy."""

    def __init__(
        self,
        base_url: str,
        session: Optional[requests.Session] = None,
        auth=None,
        timeout: float = REQUEST_TIMEOUT,
        verify: bool = True,
    ):
        self.base_url = base_url
        self.session = session or requests.Session()
        self.auth = auth
        self.timeout = timeout
        self.verify = verify
        if not verify and base_url not in _insecure_warned:
            # warn once per host
            _insecure_warned.add(base_url)
            logger.warning("TLS certificate verification disabled for %s", base_url)

    def url(self, path: str) -> str:
        return join_url(self.base_url, path)

    def request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
        headers: Optional[Dict[str, str]] = None,
        authenticate: bool = True,
        ok_statuses: Container[int] = OK_STATUSES,
        timeout: Optional[float] = None,
    ) -> requests.Response:
        """Send one request and return the response.

        Raises:
            TransportError: the request never got an HTTP answer.
            HTTPStatusError: the status code is not in ok_statuses.
        """
        url = self.url(path)
        all_headers = {"User-Agent": USER_AGENT, "Accept": "application/json"}
        if authenticate and self.auth is not None:
            all_headers.update(self.auth.auth_headers())
        if headers:
            all_headers.update(headers)

        try:
            resp = self.session.request(
                method,
                url,
                params=params,
                json=json,
                headers=all_headers,
                timeout=timeout if timeout is not None else self.timeout,
                verify=self.verify,
            )
        except requests.RequestException as exc:
            raise TransportError(f"{method} {url}: {exc}") from exc

        if resp.status_code not in ok_statuses:
            raise HTTPStatusError(resp.status_code, url)
        return resp

    def get(self, path: str, **kwargs) -> requests.Response:
        return self.request("GET", path, **kwargs)

    def post(self, path: str, **kwargs) -> requests.Response:
        return self.request("POST", path, **kwargs)

    def get_json(self, path: str, **kwargs) -> Any:
        return decode_json(self.get(path, **kwargs))

    def post_json(self, path: str, **kwargs) -> Any:
        return decode_json(self.post(path, **kwargs))


def decode_json(resp: requests.Response) -> Any:
    try:
        return resp.json()
    except ValueError as exc:
        raise DecodeError(f"Invalid JSON from {resp.url}: {exc}") from exc
