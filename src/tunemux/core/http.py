"""
Shared HTTP client for catalog and stream-resolution requests.

One long-lived requests.Session is created at startup and closed once at
teardown. Every request carries the same User-Agent and Referer headers,
which at least one catalog requires to serve results at all.
"""

from typing import Any, Mapping, Optional

import requests
from loguru import logger

from .config import HttpConfig


class HttpRequestError(Exception):
    """Network failure, timeout, or non-2xx response."""

    def __init__(self, url: str, message: str, status_code: Optional[int] = None):
        super().__init__(f"{message} ({url})")
        self.url = url
        self.status_code = status_code


class HttpClient:
    """Synchronous GET client used from worker threads.

    requests.Session is safe to share for plain GETs across the small worker
    pool; no per-request cookies or auth state are mutated.
    """

    def __init__(self, config: Optional[HttpConfig] = None):
        self._config = config or HttpConfig()
        self._session = requests.Session()
        self._session.headers.update(
            {
                "User-Agent": self._config.user_agent,
                "Referer": self._config.referer,
            }
        )
        self._closed = False

    @property
    def timeout(self) -> float:
        return self._config.timeout_seconds

    def get(
        self,
        url: str,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> str:
        """GET a URL and return the decoded body.

        Args:
            url: Absolute URL
            params: Query parameters (URL-encoded by requests)
            headers: Extra headers merged over the shared ones

        Returns:
            Response body as text

        Raises:
            HttpRequestError: On network error, timeout, or non-2xx status
        """
        if self._closed:
            raise HttpRequestError(url, "HTTP client is closed")

        try:
            response = self._session.get(
                url, params=params, headers=headers, timeout=self.timeout
            )
            response.raise_for_status()
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            raise HttpRequestError(url, f"HTTP {status}", status_code=status) from e
        except requests.exceptions.Timeout as e:
            raise HttpRequestError(url, f"Timed out after {self.timeout}s") from e
        except requests.exceptions.RequestException as e:
            raise HttpRequestError(url, f"Request failed: {e}") from e

        # Some catalogs omit the charset; requests would then guess latin-1
        if response.encoding is None or response.encoding.lower() == "iso-8859-1":
            response.encoding = response.apparent_encoding or "utf-8"
        return response.text

    def close(self) -> None:
        """Close the underlying session. Idempotent."""
        if self._closed:
            return
        self._closed = True
        self._session.close()
        logger.debug("HTTP client closed")
