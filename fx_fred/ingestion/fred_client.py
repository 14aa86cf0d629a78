"""requests-based client for the FRED (Federal Reserve Economic Data) API."""

from __future__ import annotations

from datetime import date
from typing import Any, Optional

import requests

from fx_fred.config import FredSettings
from fx_fred.errors import ProviderError
from fx_fred.utils.logger import get_logger

LOGGER = get_logger(__name__)

_MAX_ERROR_BODY = 500


def _user_agent() -> str:
    from fx_fred import __version__

    return f"fx-fred/{__version__}"


class FredClient:
    """Thin wrapper over the two FRED endpoints the importer relies on."""

    def __init__(
        self,
        settings: FredSettings,
        *,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.settings = settings
        self.base_url = settings.base_url
        self.timeout = settings.timeout_seconds
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": _user_agent(), "Accept": "application/json"})

    def _params(self, series_id: str, **extra: str) -> dict[str, str]:
        if not self.settings.api_key:
            raise ProviderError("FRED API key is not configured", kind="client_error")
        params = {"series_id": series_id, "api_key": self.settings.api_key, "file_type": "json"}
        params.update(extra)
        return params

    def _get(self, path: str, params: dict[str, str]) -> requests.Response:
        url = f"{self.base_url}{path}"
        LOGGER.debug("GET %s series_id=%s", url, params.get("series_id"))
        try:
            return self.session.get(url, params=params, timeout=self.timeout)
        except requests.Timeout as exc:
            raise ProviderError(f"Timed out calling FRED {path}", kind="timeout") from exc
        except requests.ConnectionError as exc:
            raise ProviderError(f"Could not connect to FRED {path}", kind="connection") from exc
        except requests.RequestException as exc:
            raise ProviderError(f"FRED request failed for {path}: {exc}", kind="connection") from exc

    def get_series_observations(
        self, series_id: str, start_date: date | None = None
    ) -> dict[str, Any]:
        """Return the decoded ``/series/observations`` payload for ``series_id``."""

        extra = {"observation_start": start_date.isoformat()} if start_date else {}
        response = self._get("/series/observations", self._params(series_id, **extra))
        self._raise_with_context(response, "/series/observations")
        try:
            payload = response.json()
        except ValueError as exc:
            raise ProviderError(
                f"FRED returned malformed JSON for series {series_id}", kind="parse_error"
            ) from exc
        if not isinstance(payload, dict):
            raise ProviderError(
                f"Unexpected FRED payload for series {series_id}", kind="parse_error"
            )
        return payload

    def series_exists(self, series_id: str) -> bool:
        """Return True when FRED knows ``series_id``; 400/404 mean it does not."""

        response = self._get("/series", self._params(series_id))
        if response.status_code == 200:
            return True
        if response.status_code in {400, 404}:
            LOGGER.info("FRED series %s does not exist (HTTP %s)", series_id, response.status_code)
            return False
        self._raise_with_context(response, "/series")
        return True  # pragma: no cover - other 2xx codes are not used by FRED

    def _raise_with_context(self, response: requests.Response, path: str) -> None:
        status = response.status_code
        if 200 <= status < 300:
            return
        detail = self._error_detail(response)
        message = f"FRED responded with HTTP {status} for {path}: {detail}"
        if status == 429:
            kind = "rate_limited"
        elif status >= 500:
            kind = "server_error"
        elif self._has_api_error(response):
            kind = "api_error"
        else:
            kind = "client_error"
        raise ProviderError(message, kind=kind, status=status)

    @staticmethod
    def _has_api_error(response: requests.Response) -> bool:
        try:
            body = response.json()
        except ValueError:
            return False
        return isinstance(body, dict) and "error_message" in body

    @staticmethod
    def _error_detail(response: requests.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and "error_message" in body:
            return f"[{body.get('error_code')}] {body.get('error_message')}"
        text = response.text or ""
        return text[:_MAX_ERROR_BODY]

    def close(self) -> None:  # pragma: no cover - trivial
        self.session.close()

    def __enter__(self) -> "FredClient":  # pragma: no cover - trivial
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:  # pragma: no cover - trivial
        self.close()


__all__ = ["FredClient"]
