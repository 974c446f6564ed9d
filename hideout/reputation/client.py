"""Client for the PhishTank ``checkurl`` reputation endpoint."""

from __future__ import annotations

from typing import Any, Optional

import httpx

from hideout import __version__
from hideout.errors import ReputationLookupError
from hideout.policy.config import PHISHTANK_ENDPOINT

USER_AGENT = f"hideout-chat/{__version__}"


def parse_verdict(url: str, payload: Any) -> bool:
    """Extract ``in_database`` from a checkurl response body.

    The service answers with ``results`` as an object; some mirrors wrap it
    in a list. An empty list means the URL is unknown (clean).
    """
    if not isinstance(payload, dict) or "results" not in payload:
        raise ReputationLookupError(url, "response has no results")
    results = payload["results"]
    if isinstance(results, list):
        if not results:
            return False
        results = results[0]
    if not isinstance(results, dict):
        raise ReputationLookupError(url, "results is not an object")
    return results.get("in_database") is True and results.get("valid", True) is not False


class PhishTankClient:
    """Stateless async client; one short-lived connection per lookup.

    Parameters
    ----------
    endpoint : str
        checkurl endpoint to POST to.
    api_key : str
        Optional application key, sent as ``app_key``.
    timeout : float
        Per-request timeout in seconds.
    transport : httpx.AsyncBaseTransport | None
        Custom transport, used by tests to stub the service.
    """

    def __init__(
        self,
        endpoint: str = PHISHTANK_ENDPOINT,
        api_key: str = "",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.endpoint = endpoint
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        kwargs: dict[str, Any] = {
            "timeout": self.timeout,
            "headers": {"User-Agent": USER_AGENT},
        }
        if self._transport is not None:
            kwargs["transport"] = self._transport
        return httpx.AsyncClient(**kwargs)

    def _form(self, url: str, api_key: str) -> dict[str, str]:
        form = {"url": url, "format": "json"}
        if api_key:
            form["app_key"] = api_key
        return form

    async def lookup(self, url: str, api_key: Optional[str] = None) -> bool:
        """Return ``True`` if the service lists *url* as a verified phish.

        *api_key* overrides the key given at construction. Raises
        :class:`ReputationLookupError` on any failure so callers can count it
        and fail open.
        """
        key = self.api_key if api_key is None else api_key
        try:
            async with self._client() as client:
                resp = await client.post(self.endpoint, data=self._form(url, key))
                resp.raise_for_status()
                payload = resp.json()
        except httpx.HTTPStatusError as exc:
            raise ReputationLookupError(url, f"HTTP {exc.response.status_code}") from exc
        except httpx.RequestError as exc:
            raise ReputationLookupError(url, f"request failed: {exc!r}") from exc
        except ValueError as exc:
            raise ReputationLookupError(url, "malformed JSON") from exc
        return parse_verdict(url, payload)

    async def validate_api_key(self, api_key: str) -> bool:
        """Try the endpoint with *api_key*; 200 means the key is accepted."""
        try:
            async with self._client() as client:
                resp = await client.post(
                    self.endpoint, data=self._form("https://www.google.com", api_key)
                )
        except httpx.RequestError:
            return False
        return resp.status_code == 200
