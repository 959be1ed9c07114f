# Overview: httpx client for the ZoneCount API used by the scanning terminal.

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from .stager import OfflineError


logger = logging.getLogger(__name__)


class ApiError(Exception):
    """The server answered with an error status."""

    def __init__(self, status_code: int, message: str, errors: Optional[List[str]] = None):
        super().__init__(f"{status_code}: {message}")
        self.status_code = status_code
        self.message = message
        self.errors = errors or []


class ApiClient:
    """
    HTTP client wrapper with authentication and convenience methods.

    Connection problems and timeouts surface as OfflineError so the
    stager can keep its list and defer the upload.
    """

    def __init__(self, base_url: str, timeout: float = 10.0, transport: Optional[httpx.BaseTransport] = None):
        self.base_url = base_url.rstrip("/")
        self.client = httpx.Client(timeout=timeout, transport=transport)
        self.token: Optional[str] = None
        self.current_user: Optional[Dict] = None
        self.company_id: Optional[int] = None

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> "ApiClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def _headers(self) -> Dict:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = self.client.request(
                method,
                f"{self.base_url}{path}",
                headers=self._headers(),
                **kwargs
            )
        except httpx.TransportError as e:
            logger.warning("%s %s failed: %s", method, path, e)
            raise OfflineError(str(e)) from e

        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.is_error:
            message = data.get("error") if isinstance(data, dict) else None
            errors = data.get("errors") if isinstance(data, dict) else None
            raise ApiError(response.status_code, message or response.reason_phrase, errors)
        return data

    def login(self, email: str, password: str, company_id: Optional[int] = None) -> Dict:
        """Authenticate and store token."""
        body = {"email": email, "password": password}
        if company_id is not None:
            body["company_id"] = company_id
        data = self._request("POST", "/api/auth/login", json=body)
        self.token = data.get("token")
        self.current_user = data.get("user")
        self.company_id = data.get("company_id")
        return data

    def logout(self) -> None:
        if not self.token:
            return
        self._request("POST", "/api/auth/logout")
        self.token = None
        self.current_user = None
        self.company_id = None

    def list_zones(self) -> List[Dict]:
        return self._request("GET", "/api/zones").get("zones", [])

    def lookup_product(self, code: str) -> Optional[Dict]:
        """Product master row for `code`, or None when the code is unknown."""
        try:
            data = self._request("GET", "/api/products/lookup", params={"code": code})
        except ApiError as e:
            if e.status_code == 404:
                return None
            raise
        return data.get("product")

    def submit_batch(self, batch: List[Dict]) -> Dict:
        return self._request("POST", "/api/scans/batch", json={"scans": batch})

    def submit_serials(self, serials: List[str], zone_id: int, count_number: int) -> Dict:
        return self._request("POST", "/api/scans/serials", json={
            "serials": serials,
            "zone_id": zone_id,
            "count_number": count_number,
        })
