from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional

import requests
from requests import Response


class ProviderError(RuntimeError):
    """Base error for failed calls to a remote API."""


class WeatherFetchFailed(ProviderError):
    """Raised when a complete weather bundle cannot be assembled."""


class SearchFailed(ProviderError):
    """Raised when the geocoding search endpoint fails."""


class LocationError(RuntimeError):
    """Base error for device location resolution."""


class LocationPermissionDenied(LocationError):
    """Location access was denied by the user."""


class LocationPermissionPermanentlyDenied(LocationError):
    """Location access is denied and the platform will not ask again."""


class PositionUnavailable(LocationError):
    """The platform could not produce a position in time."""


@dataclass
class RequestConfig:
    timeout: float = 10.0


class HttpGateway:
    """Base class for JSON-over-HTTP gateways sharing one session."""

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        request_config: Optional[RequestConfig] = None,
    ) -> None:
        self.request_config = request_config or RequestConfig()
        self.session = session or requests.Session()
        self._log = logging.getLogger(self.__class__.__name__)

    def close(self) -> None:
        self.session.close()

    def _handle_response(self, response: Response) -> Response:
        if response.status_code != 200:
            self._log.error("API returned %s: %s", response.status_code, response.text[:500])
            raise ProviderError(f"HTTP {response.status_code}")
        return response

    def _request(self, method: str, url: str, **kwargs) -> Response:
        try:
            response = self.session.request(
                method,
                url,
                timeout=self.request_config.timeout,
                **kwargs,
            )
        except requests.Timeout as exc:
            self._log.error("Request to %s timed out", url, exc_info=exc)
            raise ProviderError("timeout") from exc
        except requests.RequestException as exc:
            self._log.error("Request to %s failed", url, exc_info=exc)
            raise ProviderError("request failed") from exc
        return self._handle_response(response)

    def _get_json(self, url: str, params: Optional[Mapping[str, Any]] = None) -> dict:
        response = self._request("GET", url, params=params)
        try:
            data = response.json()
        except ValueError as exc:
            self._log.error("Failed to decode JSON from %s", url, exc_info=exc)
            raise ProviderError("invalid json") from exc
        if not isinstance(data, dict):
            raise ProviderError("unexpected json payload")
        return data


__all__ = [
    "HttpGateway",
    "LocationError",
    "LocationPermissionDenied",
    "LocationPermissionPermanentlyDenied",
    "PositionUnavailable",
    "ProviderError",
    "RequestConfig",
    "SearchFailed",
    "WeatherFetchFailed",
]
