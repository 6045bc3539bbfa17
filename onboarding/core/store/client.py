"""Low-level HTTP client for the profile store REST API.

Handles service account authentication, token refresh, and HTTP operations.
"""
from __future__ import annotations
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

import requests

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 5


class ProfileStoreAPIError(Exception):
    """HTTP error from the profile store.

    Attributes:
        status_code: HTTP status code
        message: Error message from response
        endpoint: API endpoint that failed
    """

    def __init__(self, status_code: int, message: str, endpoint: str):
        self.status_code = status_code
        self.message = message
        self.endpoint = endpoint
        super().__init__(f"[{status_code}] {endpoint}: {message}")


class ProfileStoreClient:
    """HTTP client for the profile store with automatic token management.

    Usage:
        client = ProfileStoreClient("http://profiles:8000", token_url="http://idp/token")
        client.authenticate_service_account("onboarding", "secret")
        response = client.get("/api/v1/roles")
    """

    def __init__(self, base_url: str, token_url: str = ""):
        """Initialize profile store client.

        Args:
            base_url: Profile store base URL
            token_url: OAuth token endpoint used for client credentials
        """
        self.base_url = base_url.rstrip("/")
        self.token_url = token_url or f"{self.base_url}/oauth/token"
        self._token: Optional[str] = None
        self._token_expires_at: Optional[datetime] = None
        self._auth_params: Dict[str, Any] = {}

    def authenticate_service_account(self, client_id: str, client_secret: str) -> str:
        """Authenticate with client credentials and remember them for refresh.

        Returns:
            Access token
        """
        self._auth_params = {"client_id": client_id, "client_secret": client_secret}
        self._refresh_token()
        return self._token

    def set_token(self, token: str, expires_in: int = 3600) -> None:
        """Use a pre-obtained token (no automatic refresh)."""
        self._token = token
        self._token_expires_at = datetime.now() + timedelta(seconds=expires_in)

    def _refresh_token(self) -> None:
        data = {
            "grant_type": "client_credentials",
            "client_id": self._auth_params["client_id"],
            "client_secret": self._auth_params["client_secret"],
        }
        resp = requests.post(self.token_url, data=data, timeout=REQUEST_TIMEOUT)
        if resp.status_code != 200:
            raise ProfileStoreAPIError(resp.status_code, resp.text, self.token_url)
        payload = resp.json()
        self._token = payload["access_token"]
        expires_in = int(payload.get("expires_in", 60))
        self._token_expires_at = datetime.now() + timedelta(seconds=expires_in)
        logger.debug("Obtained profile store token (expires in %ss)", expires_in)

    def _ensure_authenticated(self) -> None:
        """Ensure we have a valid token, refreshing if necessary."""
        if not self._token or not self._token_expires_at:
            raise ProfileStoreAPIError(401, "Not authenticated - call authenticate_service_account first", "")

        # Refresh if token expired or expiring soon (within 10 seconds)
        if datetime.now() >= self._token_expires_at - timedelta(seconds=10):
            if not self._auth_params:
                raise ProfileStoreAPIError(401, "Token expired and no credentials to refresh it", "")
            self._refresh_token()

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        self._ensure_authenticated()
        url = f"{self.base_url}{path}"
        headers = kwargs.pop("headers", {}) or {}
        headers["Authorization"] = f"Bearer {self._token}"

        resp = requests.request(method, url, headers=headers, timeout=REQUEST_TIMEOUT, **kwargs)
        self._handle_error(resp)
        return resp

    def get(self, path: str, params: Optional[Dict] = None, **kwargs) -> requests.Response:
        return self._request("GET", path, params=params, **kwargs)

    def post(self, path: str, json: Optional[Any] = None, **kwargs) -> requests.Response:
        return self._request("POST", path, json=json, **kwargs)

    def put(self, path: str, json: Optional[Any] = None, **kwargs) -> requests.Response:
        return self._request("PUT", path, json=json, **kwargs)

    def delete(self, path: str, **kwargs) -> requests.Response:
        return self._request("DELETE", path, **kwargs)

    def _handle_error(self, resp: requests.Response) -> None:
        """Raise ProfileStoreAPIError if the response status indicates an error."""
        if resp.status_code >= 400:
            raise ProfileStoreAPIError(resp.status_code, resp.text, resp.url)
