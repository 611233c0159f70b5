"""Schedules Direct JSON API HTTP client.

Handles raw HTTP requests to the Schedules Direct JSON service (API 20141201).
No data transformation - just fetch and return JSON.

Authentication:
- POST /token with the SHA-1 hex digest of the password
- Token is sent in the "token" header of every other request
- Acquired lazily; refreshed once when the API reports it missing or expired

There is no retry or backoff loop. Transport and API errors raise
SchedulesDirectError carrying the endpoint and the API's error code, and
retry policy is left to whoever schedules the update.
"""

import hashlib
import logging
import threading

import httpx

from guidearr.config import Config
from guidearr.core.exceptions import SchedulesDirectError

logger = logging.getLogger(__name__)


def hash_password(password: str) -> str:
    """SHA-1 hex digest the token endpoint expects in place of the password."""
    return hashlib.sha1(password.encode("utf-8")).hexdigest()


class SchedulesDirectClient:
    """Low-level Schedules Direct JSON API client.

    Args:
        username: Schedules Direct account username
        password: Plain-text password (hashed before it is sent)
        base_url: Service root, e.g. "https://json.schedulesdirect.org/"
        api_version: API version path segment
        timeout: Per-request timeout in seconds
        transport: Optional httpx transport (tests inject MockTransport)
    """

    def __init__(
        self,
        username: str,
        password: str,
        base_url: str | None = None,
        api_version: str | None = None,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self._username = username
        self._password_hash = hash_password(password)
        base_url = base_url or Config.SD_BASE_URL
        if not base_url.endswith("/"):
            base_url += "/"
        self._base_url = base_url
        self._api_version = api_version or Config.SD_API_VERSION
        self._timeout = timeout if timeout is not None else Config.HTTP_TIMEOUT
        self._transport = transport
        self._token: str | None = None
        self._token_lock = threading.Lock()
        self._client: httpx.Client | None = None
        self._client_lock = threading.Lock()

    @property
    def api_root(self) -> str:
        return f"{self._base_url}{self._api_version}/"

    def image_url(self, uri: str) -> str:
        """Absolute URL for an artwork URI relative to the image endpoint."""
        return f"{self.api_root}image/{uri}"

    def _get_client(self) -> httpx.Client:
        if self._client is None:
            with self._client_lock:
                # Double-check after acquiring lock
                if self._client is None:
                    self._client = httpx.Client(
                        base_url=self.api_root,
                        timeout=self._timeout,
                        transport=self._transport,
                        headers={"User-Agent": Config.HTTP_USER_AGENT},
                    )
        return self._client

    def close(self) -> None:
        with self._client_lock:
            if self._client is not None:
                self._client.close()
                self._client = None

    # =========================================================================
    # REQUEST PLUMBING
    # =========================================================================

    def _send(
        self,
        method: str,
        endpoint: str,
        *,
        json: object | None = None,
        params: dict | None = None,
        token: str | None = None,
    ) -> object:
        headers = {"token": token} if token else None
        try:
            response = self._get_client().request(
                method, endpoint, json=json, params=params, headers=headers
            )
        except httpx.HTTPError as e:
            raise SchedulesDirectError(
                f"request to {endpoint} failed: {e}", endpoint=endpoint
            ) from e

        try:
            body = response.json()
        except ValueError:
            body = None

        code = body.get("code") if isinstance(body, dict) else None
        if response.is_error or (isinstance(code, int) and code != 0):
            message = ""
            if isinstance(body, dict):
                message = body.get("message") or body.get("response") or ""
            raise SchedulesDirectError(
                f"{endpoint} returned {response.status_code}"
                + (f" (code {code}): {message}" if code is not None else ""),
                endpoint=endpoint,
                code=code if isinstance(code, int) else None,
                status_code=response.status_code,
            )

        if body is None:
            raise SchedulesDirectError(f"{endpoint} returned a non-JSON body", endpoint=endpoint)
        return body

    def _fetch_token(self) -> str:
        logger.debug("[SD] Requesting token for %s", self._username)
        body = self._send(
            "POST",
            "token",
            json={"username": self._username, "password": self._password_hash},
        )
        token = body.get("token") if isinstance(body, dict) else None
        if not token:
            raise SchedulesDirectError("token response did not include a token", endpoint="token")
        return token

    def _get_token(self) -> str:
        with self._token_lock:
            if self._token is None:
                self._token = self._fetch_token()
            return self._token

    def _invalidate_token(self, stale: str) -> None:
        with self._token_lock:
            if self._token == stale:
                self._token = None

    def _request(
        self,
        method: str,
        endpoint: str,
        *,
        json: object | None = None,
        params: dict | None = None,
    ) -> object:
        """Authenticated request. Re-authenticates once on an expired token."""
        token = self._get_token()
        try:
            return self._send(method, endpoint, json=json, params=params, token=token)
        except SchedulesDirectError as e:
            if not e.is_token_error:
                raise
            logger.info("[SD] Token rejected on %s (code %s), re-authenticating", endpoint, e.code)
            self._invalidate_token(token)
        return self._send(method, endpoint, json=json, params=params, token=self._get_token())

    # =========================================================================
    # ACCOUNT & LINEUPS
    # =========================================================================

    def get_status(self) -> dict:
        return self._request("GET", "status")

    def get_available_countries(self) -> dict:
        """Countries with coverage, keyed by region name."""
        return self._request("GET", "available/countries")

    def get_headends(self, country_code: str, postal_code: str) -> list:
        return self._request(
            "GET", "headends", params={"country": country_code, "postalcode": postal_code}
        )

    def preview_lineup(self, lineup_id: str) -> list:
        return self._request("GET", f"lineups/preview/{lineup_id}")

    def add_lineup(self, lineup_id: str) -> dict:
        logger.info("[SD] Adding lineup %s to account", lineup_id)
        return self._request("PUT", f"lineups/{lineup_id}")

    def delete_lineup(self, lineup_id: str) -> dict:
        logger.info("[SD] Removing lineup %s from account", lineup_id)
        return self._request("DELETE", f"lineups/{lineup_id}")

    def get_lineup_channels(self, lineup_id: str, verbose: bool = True) -> dict:
        params = {"verboseMap": "true"} if verbose else None
        return self._request("GET", f"lineups/{lineup_id}", params=params)

    # =========================================================================
    # SCHEDULES & PROGRAMS
    # =========================================================================

    def get_schedule_md5s(self, requests: list[dict]) -> dict:
        """Current content hash per station and date.

        Args:
            requests: [{"stationID": ..., "date": ["YYYY-MM-DD", ...]}]

        Returns:
            {stationID: {date: {"code", "message", "lastModified", "md5"}}}
        """
        return self._request("POST", "schedules/md5", json=requests)

    def get_schedules(self, requests: list[dict]) -> list:
        """Airings for the requested station/date pairs."""
        return self._request("POST", "schedules", json=requests)

    def get_programs(self, program_ids: list[str]) -> list:
        """Extended program info, at most 5000 ids per call."""
        return self._request("POST", "programs", json=program_ids)

    def get_artwork(self, program_ids: list[str]) -> list:
        """Artwork lists, at most 500 ids per call."""
        return self._request("POST", "metadata/programs/", json=program_ids)
