from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

import requests
from requests import Response

from ..errors import ProviderUnavailable


logger = logging.getLogger(__name__)


class ProviderError(ProviderUnavailable):
    """Base provider error."""


class QuotaExceeded(ProviderError):
    """Raised when a provider reports a quota/usage limit issue."""


@dataclass
class RequestConfig:
    timeout: float = 5.0
    user_agent: str = "cityweather/1.0"


class HTTPProvider:
    """Base class that adds timeouts and error translation for HTTP providers.

    A single attempt is made per call; failures surface as :class:`ProviderError`.
    """

    name = "http"

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        request_config: Optional[RequestConfig] = None,
    ) -> None:
        self.request_config = request_config or RequestConfig()
        self.session = session or self._build_session(self.request_config)
        self._log = logging.getLogger(self.__class__.__name__)

    def _build_session(self, config: RequestConfig) -> requests.Session:
        session = requests.Session()
        session.headers["User-Agent"] = config.user_agent
        return session

    def _handle_response(self, response: Response) -> Response:
        if response.status_code == 429:
            self._log.warning("%s quota exceeded: %s", self.name, response.text)
            raise QuotaExceeded(f"{self.name} quota exceeded")
        if response.status_code >= 400:
            self._log.error("%s returned %s: %s", self.name, response.status_code, response.text[:200])
            raise ProviderError(f"{self.name}: HTTP {response.status_code}")
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
            self._log.error("%s %s timed out after %ss", method, url, self.request_config.timeout)
            raise ProviderError(f"{self.name}: timeout") from exc
        except requests.RequestException as exc:
            self._log.error("%s %s failed: %s", method, url, exc)
            raise ProviderError(f"{self.name}: request failed") from exc
        self._log.debug("%s %s -> %s", method, response.url, response.status_code)
        return self._handle_response(response)

    def _json(self, response: Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            self._log.error("Failed to decode JSON", exc_info=exc)
            raise ProviderError(f"{self.name}: invalid json") from exc


def safe_float(value: Optional[object]) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


__all__ = ["HTTPProvider", "ProviderError", "QuotaExceeded", "RequestConfig", "safe_float"]
