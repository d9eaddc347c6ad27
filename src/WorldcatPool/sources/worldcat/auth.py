"""OCLC client-credential token cache."""

from __future__ import annotations

import threading
from datetime import datetime, timezone

import requests
from dateutil import parser as dt_parser

from WorldcatPool.core.errors import UpstreamRequestError
from WorldcatPool.utils.log import log

DEFAULT_TIMEOUT = 10.0


class OclcAuth:
    """Fetch and cache an OCLC bearer token.

    The token is shared by all requests of the process. A new token is
    requested when none is cached or the cached one has expired.
    """

    def __init__(
        self,
        *,
        session: requests.Session,
        auth_url: str,
        key: str,
        secret: str,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self._session = session
        self._auth_url = auth_url
        self._key = key
        self._secret = secret
        self._timeout = timeout
        self._lock = threading.Lock()
        self._token = ""
        self._expires = datetime.min.replace(tzinfo=timezone.utc)

    @property
    def expires(self) -> datetime:
        return self._expires

    def token(self) -> str:
        """Return a valid bearer token, refreshing it when needed.

        Raises:
            UpstreamRequestError: If the token endpoint fails.
        """
        with self._lock:
            now = datetime.now(timezone.utc)
            if self._token and self._expires > now:
                log.debug("OCLC auth is valid and unexpired")
                return self._token
            log.info("Requesting new OCLC auth token from %s", self._auth_url)
            self._request_token()
            return self._token

    def invalidate(self) -> None:
        """Forget the cached token after the upstream rejected it."""
        with self._lock:
            self._token = ""
            self._expires = datetime.min.replace(tzinfo=timezone.utc)

    def _request_token(self) -> None:
        self._token = ""
        try:
            response = self._session.post(
                self._auth_url,
                auth=(self._key, self._secret),
                headers={"Accept": "application/json"},
                timeout=self._timeout,
            )
        except requests.Timeout as error:
            raise UpstreamRequestError(408, f"{self._auth_url} timed out") from error
        except requests.ConnectionError as error:
            raise UpstreamRequestError(503, f"{self._auth_url} refused connection") from error
        except requests.RequestException as error:
            raise UpstreamRequestError(502, f"{self._auth_url} request failed: {error}") from error

        if response.status_code != 200:
            log.error("OCLC auth request failed: status=%d body=%s", response.status_code, response.text)
            raise UpstreamRequestError(response.status_code, response.text)

        try:
            payload = response.json()
        except ValueError as error:
            raise UpstreamRequestError(500, f"Unable to parse OCLC auth response: {error}") from error

        token = str(payload.get("access_token") or "") if isinstance(payload, dict) else ""
        if not token:
            raise UpstreamRequestError(500, "OCLC auth response has no access_token")

        self._token = token
        self._expires = _parse_expiry(payload.get("expires_at"), payload.get("expires_in"))
        log.info("OCLC token expires %s", self._expires.isoformat())


def _parse_expiry(expires_at: object, expires_in: object) -> datetime:
    """Resolve token expiry from ``expires_at`` or ``expires_in`` seconds."""
    if isinstance(expires_at, str) and expires_at.strip():
        try:
            parsed = dt_parser.parse(expires_at)
        except (TypeError, ValueError, OverflowError):
            parsed = None
        if parsed is not None:
            return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    if isinstance(expires_in, (int, float)) and not isinstance(expires_in, bool):
        return datetime.fromtimestamp(datetime.now(timezone.utc).timestamp() + expires_in, tz=timezone.utc)
    return datetime.now(timezone.utc)
