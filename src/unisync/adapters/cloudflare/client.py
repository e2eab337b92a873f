"""
Cloudflare API Client - Low-level HTTP client for the Cloudflare v4 REST API.

This handles the raw HTTP communication with Cloudflare.
The CloudflareResourceAdapter uses this to implement the ExternalApiPort.
"""

import logging
from typing import Any, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ...core.ports.config_provider import DEFAULT_API_URL
from ...core.ports.external_api import (
    AuthenticationError,
    ExternalApiError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitError,
    TransientError,
)


class CloudflareApiClient:
    """
    Low-level Cloudflare REST API client.

    Handles bearer-token authentication, the ``{success, errors, result}``
    response envelope and error mapping. Idempotent requests that hit 429 or
    a 5xx are retried by the session before an error is raised.
    """

    RETRY_STATUSES = (429, 500, 502, 503, 504)
    DEFAULT_PER_PAGE = 100
    MAX_PAGES = 1000

    def __init__(
        self,
        api_token: str,
        base_url: str = DEFAULT_API_URL,
        timeout: float = 30.0,
        max_retries: int = 3,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the Cloudflare client.

        Args:
            api_token: API token (sent as a bearer token)
            base_url: API root, e.g. https://api.cloudflare.com/client/v4
            timeout: Per-request timeout in seconds
            max_retries: Session-level retries for 429/5xx
            session: Pre-built session (tests)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.logger = logging.getLogger("CloudflareApiClient")

        self.headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "Authorization": f"Bearer {api_token}",
        }

        if session is None:
            session = requests.Session()
            retry = Retry(
                total=max_retries,
                backoff_factor=0.5,
                status_forcelist=self.RETRY_STATUSES,
                allowed_methods=frozenset({"GET", "PUT", "DELETE"}),
                respect_retry_after_header=True,
                raise_on_status=False,
            )
            session.mount("https://", HTTPAdapter(max_retries=retry))
            session.mount("http://", HTTPAdapter(max_retries=retry))

        self._session = session
        self._session.headers.update(self.headers)

    # -------------------------------------------------------------------------
    # Core Request Methods
    # -------------------------------------------------------------------------

    def request(
        self,
        method: str,
        endpoint: str,
        **kwargs
    ) -> Any:
        """
        Make an authenticated request to the Cloudflare API.

        Args:
            method: HTTP method (GET, POST, PUT, PATCH, DELETE)
            endpoint: API endpoint (e.g., 'accounts/abc/gateway/rules')
            **kwargs: Additional arguments for requests

        Returns:
            The envelope's ``result``

        Raises:
            ExternalApiError: On API errors
        """
        return self._send(method, endpoint, **kwargs).get("result")

    def _send(self, method: str, endpoint: str, **kwargs) -> dict[str, Any]:
        """Perform the request and return the whole envelope."""
        url = f"{self.base_url}/{endpoint}"
        kwargs.setdefault("timeout", self.timeout)

        self.logger.debug(f"{method} {endpoint}")
        try:
            response = self._session.request(method, url, **kwargs)
        except requests.exceptions.ConnectionError as e:
            raise TransientError(f"Connection failed: {e}", resource=endpoint, cause=e)
        except requests.exceptions.Timeout as e:
            raise TransientError(f"Request timed out: {e}", resource=endpoint, cause=e)
        except requests.exceptions.RetryError as e:
            raise TransientError(f"Retries exhausted: {e}", resource=endpoint, cause=e)
        except requests.exceptions.RequestException as e:
            raise ExternalApiError(f"Request failed: {e}", resource=endpoint, cause=e)

        return self._handle_response(response, endpoint)

    def get(self, endpoint: str, **kwargs) -> Any:
        """GET request."""
        return self.request("GET", endpoint, **kwargs)

    def post(self, endpoint: str, json: Optional[dict] = None, **kwargs) -> Any:
        """POST request."""
        return self.request("POST", endpoint, json=json, **kwargs)

    def put(self, endpoint: str, json: Optional[dict] = None, **kwargs) -> Any:
        """PUT request."""
        return self.request("PUT", endpoint, json=json, **kwargs)

    def patch(self, endpoint: str, json: Optional[dict] = None, **kwargs) -> Any:
        """PATCH request."""
        return self.request("PATCH", endpoint, json=json, **kwargs)

    def delete(self, endpoint: str, **kwargs) -> Any:
        """DELETE request."""
        return self.request("DELETE", endpoint, **kwargs)

    def list_all(
        self,
        endpoint: str,
        params: Optional[dict[str, Any]] = None,
        per_page: int = DEFAULT_PER_PAGE,
    ) -> list[dict[str, Any]]:
        """
        GET every page of a collection.

        Follows ``result_info.total_pages``. Endpoints that send no page
        info end when a page comes back short.

        Raises:
            ExternalApiError: On API errors or a non-list result
        """
        results: list[dict[str, Any]] = []
        page = 1
        while page <= self.MAX_PAGES:
            query = {**(params or {}), "page": page, "per_page": per_page}
            body = self._send("GET", endpoint, params=query)

            items = body.get("result") or []
            if not isinstance(items, list):
                raise ExternalApiError(f"Expected a list from {endpoint}", resource=endpoint)
            results.extend(items)

            total_pages = (body.get("result_info") or {}).get("total_pages")
            if total_pages is not None:
                if page >= total_pages:
                    break
            elif len(items) < per_page:
                break
            page += 1

        self.logger.debug(f"Listed {len(results)} item(s) from {endpoint} in {page} page(s)")
        return results

    # -------------------------------------------------------------------------
    # Response Handling
    # -------------------------------------------------------------------------

    def _handle_response(
        self,
        response: requests.Response,
        endpoint: str
    ) -> dict[str, Any]:
        """Check the envelope and map errors. Returns the envelope."""
        body = self._json(response)

        if response.ok and body.get("success", True):
            return body

        status = response.status_code
        message = self._error_message(body) or (response.text[:500] if response.text else "")

        if status == 401:
            raise AuthenticationError(
                "Authentication failed. Check CLOUDFLARE_API_TOKEN.",
                resource=endpoint,
                status_code=status,
            )

        if status == 403:
            raise PermissionDeniedError(
                f"Permission denied for {endpoint}: {message}",
                resource=endpoint,
                status_code=status,
            )

        if status == 404 or self._is_not_found(body):
            raise NotFoundError(
                f"Not found: {endpoint}",
                resource=endpoint,
                status_code=status,
            )

        if status == 429:
            raise RateLimitError(
                f"Rate limited on {endpoint}",
                retry_after=self._retry_after(response),
                resource=endpoint,
                status_code=status,
            )

        if status >= 500:
            raise TransientError(
                f"Server error {status}: {message}",
                resource=endpoint,
                status_code=status,
            )

        # Generic error
        raise ExternalApiError(
            f"API error {status}: {message}",
            resource=endpoint,
            status_code=status,
        )

    def _json(self, response: requests.Response) -> dict[str, Any]:
        if not response.text:
            return {}
        try:
            body = response.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}

    def _error_message(self, body: dict[str, Any]) -> str:
        errors = body.get("errors") or []
        return "; ".join(
            f"[{e.get('code')}] {e.get('message')}" if isinstance(e, dict) else str(e)
            for e in errors
        )

    def _is_not_found(self, body: dict[str, Any]) -> bool:
        # Some endpoints answer 400 with a "not found" error for unknown ids
        for error in body.get("errors") or []:
            if isinstance(error, dict) and "not found" in str(error.get("message", "")).lower():
                return True
        return False

    def _retry_after(self, response: requests.Response) -> Optional[float]:
        value = response.headers.get("Retry-After")
        if not value:
            return None
        try:
            return float(value)
        except ValueError:
            return None

    # -------------------------------------------------------------------------
    # Convenience Methods
    # -------------------------------------------------------------------------

    def verify_token(self) -> dict[str, Any]:
        """Check the token against user/tokens/verify."""
        return self.get("user/tokens/verify") or {}

    def test_connection(self) -> bool:
        """Test if connection is valid."""
        try:
            self.verify_token()
            return True
        except ExternalApiError:
            return False
