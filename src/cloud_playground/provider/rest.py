"""
Shared HTTP plumbing for providers whose control plane is a bearer-token JSON REST API
(DigitalOcean and Hetzner Cloud).
"""

import logging
from typing import Any, Dict, Optional

import aiohttp

from cloud_playground.common.config import ProviderConfig

from .provider import VMProvider


class RestAPIError(Exception):
    """A non-2xx response from a provider REST API."""

    def __init__(self, status: int, message: str, code: Optional[str] = None) -> None:
        self.status = status
        self.code = code
        self.message = message
        super().__init__(f"HTTP {status}{f' ({code})' if code else ''}: {message}")


class RestVMProvider(VMProvider):
    """A VMProvider that talks to a JSON REST API with a bearer token."""

    BASE_URL = ""
    _REQUEST_TIMEOUT = 60  # Seconds

    def __init__(self, config: ProviderConfig, api_token: str) -> None:
        super().__init__(config)
        self._api_token = api_token
        self._logger = logging.getLogger(type(self).__module__)

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_token}",
            "Content-Type": "application/json",
        }

    def _parse_error(self, status: int, body: Any, reason: str) -> RestAPIError:
        """Build a RestAPIError from an error response body."""
        message = reason
        if isinstance(body, dict) and body.get("message"):
            message = body["message"]
        return RestAPIError(status, message)

    async def _request(
        self,
        method: str,
        path: str,
        body: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Make one API request and return the decoded JSON body.

        Returns:
            The response body, or an empty dict for responses without content

        Raises:
            RestAPIError: If the response status is not 2xx
        """
        url = f"{self.BASE_URL}{path}"
        self._logger.debug(f"{method} {url}")
        timeout = aiohttp.ClientTimeout(total=self._REQUEST_TIMEOUT)
        async with aiohttp.ClientSession(headers=self._headers(), timeout=timeout) as session:
            async with session.request(method, url, json=body, params=params) as response:
                if response.status == 204:
                    return {}
                try:
                    data = await response.json(content_type=None)
                except (aiohttp.ContentTypeError, ValueError):
                    data = None
                if response.status >= 400:
                    raise self._parse_error(response.status, data, response.reason or "")
                return data or {}
