"""Authenticated REST client used for gateway discovery and fallback replies."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any
from urllib.parse import urlencode, urljoin

import requests
from requests import Response

from tradegate.config import GatewaySettings

LOGGER = logging.getLogger(__name__)

# Interaction callback type: respond immediately with a message.
CHANNEL_MESSAGE_WITH_SOURCE = 4
EPHEMERAL_FLAG = 1 << 6


class ApiError(Exception):
    """Base error for REST operations."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ApiUnauthorizedError(ApiError):
    """Raised when the token is rejected."""


class ApiNotFoundError(ApiError):
    """Raised when the API returns 404."""


class ApiRateLimitedError(ApiError):
    """Raised when the API returns 429."""

    def __init__(self, message: str, *, retry_after: float | None = None) -> None:
        super().__init__(message, status_code=429)
        self.retry_after = retry_after


class ApiRequestError(ApiError):
    """Raised for transport failures and unexpected responses."""


class RestClient:
    def __init__(
        self,
        *,
        base_url: str,
        token: str | None,
        timeout_seconds: float,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._timeout_seconds = timeout_seconds

    @classmethod
    def from_settings(cls, settings: GatewaySettings) -> RestClient:
        return cls(
            base_url=str(settings.api_base_url),
            token=settings.token,
            timeout_seconds=float(settings.rest_timeout_seconds),
        )

    def send_authenticated(
        self,
        method: str,
        path: str,
        json_body: dict[str, Any] | None = None,
        *,
        params: dict[str, object] | None = None,
    ) -> Response:
        url = self._build_url(path, params=params)
        try:
            response = requests.request(
                method,
                url,
                headers=self._build_headers(),
                json=json_body,
                timeout=self._timeout_seconds,
            )
        except requests.RequestException as exc:
            raise ApiRequestError(str(exc)) from exc
        if response.status_code >= 400:
            self._raise_for_status(response)
        return response

    def get_gateway_url(self) -> str:
        """Discover the gateway address for the first connection of the process."""

        data = self._request_json("GET", "/gateway/bot")
        url = data.get("url")
        if not isinstance(url, str) or not url:
            raise ApiRequestError("Gateway discovery response did not include a url.")
        limit = data.get("session_start_limit") or {}
        if limit:
            LOGGER.info(
                "Gateway discovered url=%s remaining_starts=%s/%s",
                url,
                limit.get("remaining"),
                limit.get("total"),
            )
        return url

    def create_interaction_response(
        self,
        interaction_id: str,
        interaction_token: str,
        content: str,
        *,
        ephemeral: bool = True,
    ) -> None:
        body: dict[str, Any] = {
            "type": CHANNEL_MESSAGE_WITH_SOURCE,
            "data": {"content": content},
        }
        if ephemeral:
            body["data"]["flags"] = EPHEMERAL_FLAG
        self.send_authenticated("POST", f"/interactions/{interaction_id}/{interaction_token}/callback", body)

    def _request_json(
        self,
        method: str,
        path: str,
        *,
        json_body: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        response = self.send_authenticated(method, path, json_body)
        if not response.content:
            return {}
        try:
            data = response.json()
        except (json.JSONDecodeError, ValueError) as exc:
            raise ApiRequestError("API returned invalid JSON.") from exc
        if not isinstance(data, dict):
            raise ApiRequestError("API returned a non-object JSON body.")
        return data

    def _build_headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json", "User-Agent": "tradegate (gateway client)"}
        if self._token:
            headers["Authorization"] = f"Bot {self._token}"
        return headers

    def _build_url(self, path: str, *, params: dict[str, object] | None = None) -> str:
        url = urljoin(f"{self._base_url}/", path.lstrip("/"))
        if params:
            query = urlencode({key: value for key, value in params.items() if value is not None})
            if query:
                return f"{url}?{query}"
        return url

    @staticmethod
    def _raise_for_status(response: Response) -> None:
        status = response.status_code
        if status == 404:
            raise ApiNotFoundError("API resource not found.", status_code=status)
        if status in {401, 403}:
            raise ApiUnauthorizedError("API access denied.", status_code=status)
        if status == 429:
            retry_after: float | None = None
            try:
                retry_after = float(response.json().get("retry_after"))
            except (ValueError, TypeError, AttributeError):
                retry_after = _parse_retry_after(response.headers.get("Retry-After"))
            raise ApiRateLimitedError("API rate limit exceeded.", retry_after=retry_after)
        raise ApiRequestError(f"API request failed with status {status}.", status_code=status)


def _parse_retry_after(header: str | None) -> float | None:
    """Seconds to wait from a ``Retry-After`` header given as seconds or an HTTP date."""

    if not header:
        return None
    try:
        return float(header)
    except ValueError:
        pass
    try:
        retry_at = parsedate_to_datetime(header)
    except (TypeError, ValueError):
        LOGGER.debug("Ignoring unparseable Retry-After header %r", header)
        return None
    if retry_at.tzinfo is None:
        retry_at = retry_at.replace(tzinfo=timezone.utc)
    return max(0.0, (retry_at - datetime.now(timezone.utc)).total_seconds())


__all__ = [
    "ApiError",
    "ApiNotFoundError",
    "ApiRateLimitedError",
    "ApiRequestError",
    "ApiUnauthorizedError",
    "RestClient",
]
