"""WorldCat API client."""

from __future__ import annotations

import json
import random
import time
from typing import Any, Mapping
from urllib.parse import quote

import requests

from WorldcatPool.core.errors import UpstreamFormatError, UpstreamRequestError
from WorldcatPool.sources.worldcat.auth import OclcAuth
from WorldcatPool.sources.worldcat.query import UpstreamQuery
from WorldcatPool.utils.log import log

DEFAULT_TIMEOUT = 10.0
MAX_ATTEMPTS = 3
BASE_PAUSE = 0.5
MAX_SLEEP = 4.0
RETRYABLE_STATUS = {429, 500, 502, 503, 504}

HEADERS = {
    "User-Agent": "worldcat-pool/1.0",
}


class WorldcatApiClient:
    """Low-level HTTP client for the WorldCat search and metadata APIs.

    Responsible only for making network requests and returning raw payloads.
    Query compilation and record mapping are handled elsewhere.
    """

    def __init__(
        self,
        *,
        search_url: str,
        bib_url: str,
        format_url: str,
        wskey: str = "",
        auth: OclcAuth | None = None,
        session: requests.Session | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        """Initialize the client.

        Args:
            search_url: Brief search endpoint.
            bib_url: Detailed record endpoint, the OCLC number is appended.
            format_url: Format lookup endpoint, the OCLC number is appended.
            wskey: Legacy web service key sent with searches when set.
            auth: Bearer token provider. Searches are unauthenticated when
                missing; record lookups require it.
            session: Shared HTTP session, created when omitted.
            timeout: Request timeout in seconds.
        """
        self._session = session or requests.Session()
        self._search_url = search_url
        self._bib_url = bib_url.rstrip("/")
        self._format_url = format_url.rstrip("/")
        self._wskey = wskey
        self._auth = auth
        self._timeout = timeout

    def close(self) -> None:
        """Close the underlying HTTP session and release pooled connections.
        """
        self._session.close()

    def __enter__(self) -> WorldcatApiClient:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def search(self, upstream: UpstreamQuery) -> bytes:
        """Run a brief search and return the raw response body.

        Raises:
            UpstreamRequestError: On transport failure or non-200 status.
        """
        params = upstream.params()
        accept = "application/json"
        if upstream.dialect.brief_format == "xml":
            params["recordSchema"] = "dc"
            accept = "application/xml"
        if self._wskey:
            params["wskey"] = self._wskey
        response = self._get(self._search_url, params=params, accept=accept, bearer=self._auth is not None)
        return response.content

    def fetch_bib(self, oclc_number: str) -> dict[str, Any]:
        """Fetch the detailed bibliographic record for an OCLC number."""
        return self._get_json(f"{self._bib_url}/{quote(oclc_number, safe='')}")

    def fetch_format(self, oclc_number: str) -> dict[str, Any]:
        """Fetch the general/specific format classification of a record."""
        return self._get_json(f"{self._format_url}/{quote(oclc_number, safe='')}")

    def _get_json(self, url: str) -> dict[str, Any]:
        if self._auth is None:
            raise UpstreamRequestError(401, "OCLC credentials are not configured")
        response = self._get(url, accept="application/json", bearer=True)
        try:
            payload = json.loads(response.content)
        except ValueError as error:
            raise UpstreamFormatError(f"Invalid JSON response from WorldCat: {error}") from error
        if not isinstance(payload, dict):
            raise UpstreamFormatError("Invalid JSON response from WorldCat: root must be an object")
        return payload

    def _get(
        self,
        url: str,
        *,
        params: Mapping[str, str] | None = None,
        accept: str,
        bearer: bool,
    ) -> requests.Response:
        """Issue GET with retries and map failures to ``UpstreamRequestError``."""
        headers = {**HEADERS, "Accept": accept}
        if bearer and self._auth is not None:
            headers["Authorization"] = f"Bearer {self._auth.token()}"

        started = time.monotonic()
        response = self._get_with_retry(url, params=params, headers=headers)
        elapsed_ms = int((time.monotonic() - started) * 1000)

        if response.status_code != 200:
            if response.status_code == 401 and self._auth is not None:
                self._auth.invalidate()
            log.error(
                "Failed response from GET %s %d. Elapsed Time: %d (ms). %s",
                url,
                response.status_code,
                elapsed_ms,
                response.text,
            )
            raise UpstreamRequestError(response.status_code, response.text)

        log.info("Successful response from GET %s. Elapsed Time: %d (ms)", url, elapsed_ms)
        return response

    def _get_with_retry(
        self,
        url: str,
        *,
        params: Mapping[str, str] | None,
        headers: Mapping[str, str],
    ) -> requests.Response:
        """Retry timeouts, connection errors and transient statuses.

        The last transient response is returned as is once attempts run out.
        """
        last_error: requests.RequestException | None = None
        for attempt in range(1, MAX_ATTEMPTS + 1):
            try:
                response = self._session.get(url, params=params, headers=headers, timeout=self._timeout)
                if response.status_code not in RETRYABLE_STATUS or attempt == MAX_ATTEMPTS:
                    return response
                last_error = requests.HTTPError(f"HTTP {response.status_code}", response=response)
            except (requests.Timeout, requests.ConnectionError) as error:
                last_error = error
            except requests.RequestException as error:
                log.error("GET %s failed: %s", url, error)
                raise UpstreamRequestError(502, f"{url} request failed: {error}") from error
            if attempt < MAX_ATTEMPTS:
                delay = min(BASE_PAUSE * (2 ** (attempt - 1)) + random.uniform(0, 0.3), MAX_SLEEP)
                log.debug("WorldCat retry attempt=%d/%d delay=%.2fs error=%s", attempt, MAX_ATTEMPTS, delay, last_error)
                time.sleep(delay)

        if isinstance(last_error, requests.Timeout):
            raise UpstreamRequestError(408, f"{url} timed out") from last_error
        raise UpstreamRequestError(503, f"{url} refused connection") from last_error
