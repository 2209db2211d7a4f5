# src/sluice/plugins/clients/http.py
"""HTTP client for the search backend's bulk endpoint."""

from __future__ import annotations

import re
import ssl
import time
from typing import Any
from urllib.parse import urlparse

import httpx
import structlog

logger = structlog.get_logger(__name__)


class SearchHTTPClient:
    """Thin wrapper around one pooled httpx.Client.

    Supports:
    - Separate connect and response timeouts
    - Optional basic authentication
    - TLS verification on/off, or a custom CA bundle
    - Latency measurement and redacted debug logging

    Example:
        client = SearchHTTPClient(
            "https://search.internal:9200",
            username="writer",
            password="...",
            verify="/etc/ssl/search-ca.pem",
        )
        response = client.put("_bulk", payload, params={"refresh": "true"})
        client.close()
    """

    def __init__(
        self,
        base_url: str,
        *,
        username: str | None = None,
        password: str | None = None,
        connect_timeout: float = 5.0,
        response_timeout: float = 15.0,
        verify: bool | str = True,
        headers: dict[str, str] | None = None,
    ) -> None:
        """Initialize client.

        Args:
            base_url: Scheme, host and optional path prefix of the backend
            username: Basic auth user (auth is disabled when None)
            password: Basic auth password
            connect_timeout: Seconds to wait for a connection
            response_timeout: Seconds to wait for the response
            verify: False to skip certificate checks, or a CA bundle path
            headers: Default headers for all requests
        """
        self._base_url = base_url.strip().rstrip("/")
        self._default_headers = headers or {}
        auth = httpx.BasicAuth(username, password or "") if username else None
        # follow_redirects=False: a redirected bulk PUT would resend the
        # whole payload to a host the operator did not configure.
        self._client = httpx.Client(
            timeout=httpx.Timeout(response_timeout, connect=connect_timeout),
            auth=auth,
            verify=_ssl_verify(verify),
            headers=self._default_headers,
            follow_redirects=False,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    # Well-known sensitive headers (exact match, case-insensitive).
    _SENSITIVE_HEADERS_EXACT = frozenset(
        {
            "authorization",
            "proxy-authorization",
            "cookie",
            "set-cookie",
            "x-api-key",
            "api-key",
            "x-auth-token",
        }
    )

    # Words that mark a header as sensitive when they appear as complete
    # delimiter-separated segments ("X-Auth-Token" matches, "X-Author" does not).
    _SENSITIVE_HEADER_WORDS = frozenset({"auth", "apikey", "key", "secret", "token", "password", "credential"})

    def _is_sensitive_header(self, header_name: str) -> bool:
        lower_name = header_name.lower()
        if lower_name in self._SENSITIVE_HEADERS_EXACT:
            return True
        segments = [seg for seg in re.split(r"[^a-z0-9]+", lower_name) if seg]
        return any(seg in self._SENSITIVE_HEADER_WORDS for seg in segments)

    def redact_headers(self, headers: httpx.Headers | dict[str, str]) -> dict[str, str]:
        """Copy of headers with sensitive values masked, safe to log."""
        return {k: ("<redacted>" if self._is_sensitive_header(k) else v) for k, v in headers.items()}

    def endpoint(self, path: str, params: dict[str, str] | None = None) -> httpx.URL:
        """Join base_url with path, handling slash combinations."""
        url = f"{self._base_url}/{path.lstrip('/')}"
        if params:
            return httpx.URL(url, params=params)
        return httpx.URL(url)

    def put(
        self,
        path: str,
        content: bytes,
        *,
        params: dict[str, str] | None = None,
        content_type: str = "application/json",
    ) -> httpx.Response:
        """PUT raw bytes and return the response, whatever its status.

        Raises:
            httpx.HTTPError: Connection, timeout or protocol failure.
        """
        url = self.endpoint(path, params)
        start = time.perf_counter()
        try:
            response = self._client.put(url, content=content, headers={"Content-Type": content_type})
        except httpx.HTTPError as e:
            logger.warning(
                "http_request_failed",
                method="PUT",
                host=_host(str(url)),
                error=str(e),
                error_type=type(e).__name__,
                latency_ms=_elapsed_ms(start),
            )
            raise

        logger.debug(
            "http_request_completed",
            method="PUT",
            host=_host(str(url)),
            path=url.path,
            status_code=response.status_code,
            request_bytes=len(content),
            latency_ms=_elapsed_ms(start),
            request_headers=self.redact_headers(response.request.headers),
        )
        return response

    def close(self) -> None:
        """Close the underlying httpx client and release connections."""
        self._client.close()

    def __enter__(self) -> SearchHTTPClient:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()


def _ssl_verify(verify: bool | str) -> bool | ssl.SSLContext:
    if isinstance(verify, str):
        return ssl.create_default_context(cafile=verify)
    return verify


def _host(url: str) -> str:
    # hostname, not netloc: never log userinfo
    return urlparse(url).hostname or "unknown"


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 2)
