"""Adapter contract and shared HTTP transport.

Adapters translate HTTP failures into the retry taxonomy: network errors,
timeouts, rate limits and server errors become ``TransientError``; rejected
requests (bad URL, token or parameters) become ``ConfigError``.
"""

from __future__ import annotations

import asyncio
from typing import Any, Mapping, Protocol

import aiohttp

from core.errors import ConfigError, TransientError
from core.logging_config import get_logger
from core.types import Sample, TimeWindow

_LOGGER = get_logger(__name__)

_CONFIG_STATUSES = frozenset({400, 401, 403, 404, 405, 410, 422})


class SourceAdapter(Protocol):
    """Uniform fetch capability implemented by every provider variant."""

    source_name: str

    async def fetch(self, window: TimeWindow) -> list[Sample]:
        """Return samples overlapping ``window``.

        Raises:
            TransientError: For retryable failures.
            ConfigError: For failures that retrying cannot fix.
        """
        ...

    async def close(self) -> None:
        """Release network resources."""
        ...


class HttpSourceAdapter:
    """Base class for adapters that issue one HTTP GET per fetch.

    A shared ``aiohttp.ClientSession`` may be injected; otherwise the
    adapter owns a lazily created session and closes it in :meth:`close`.
    """

    def __init__(
        self,
        source_name: str,
        timeout_seconds: float,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self.source_name = source_name
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._session = session
        self._owns_session = session is None

    async def close(self) -> None:
        """Close the session when this adapter created it."""
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def _get(self, url: str, params: Mapping[str, str] | None = None) -> tuple[int, bytes]:
        """Issue a GET request and return status and body.

        Raises:
            TransientError: For network errors, timeouts, 429 and 5xx.
            ConfigError: For request-rejecting 4xx statuses.
        """
        session = self._ensure_session()
        try:
            async with session.get(url, params=params, timeout=self._timeout) as response:
                body = await response.read()
                status = response.status
        except asyncio.TimeoutError as error:
            raise TransientError(f"[{self.source_name}] request to {url} timed out") from error
        except aiohttp.InvalidURL as error:
            raise ConfigError(f"[{self.source_name}] invalid URL {url}: {error}") from error
        except aiohttp.ClientError as error:
            raise TransientError(
                f"[{self.source_name}] request to {url} failed: {error}"
            ) from error
        _LOGGER.debug("http_response", source_name=self.source_name, url=url, status=status)
        return status, body

    def _raise_for_status(self, status: int, url: str, body: bytes) -> None:
        """Map non-success statuses onto the error taxonomy."""
        if status < 400:
            return
        excerpt = body[:200].decode("utf-8", errors="replace")
        message = f"[{self.source_name}] HTTP {status} from {url}: {excerpt}"
        if status in _CONFIG_STATUSES:
            raise ConfigError(message)
        raise TransientError(message)

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session


def require_str(params: Mapping[str, Any], key: str, source_name: str) -> str:
    """Return a required non-empty string parameter.

    Raises:
        ConfigError: If the key is absent or not a non-empty string.
    """
    value = params.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(
            f"Source '{source_name}' requires a non-empty string value '{key}'."
        )
    return value.strip()


def optional_str(params: Mapping[str, Any], key: str, source_name: str) -> str | None:
    """Return an optional string parameter.

    Raises:
        ConfigError: If the value is present but not a string.
    """
    value = params.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ConfigError(f"Source '{source_name}' value '{key}' must be a string.")
    return value.strip() or None


def timeout_param(params: Mapping[str, Any], source_name: str, default: float) -> float:
    """Return the per-fetch timeout in seconds.

    Raises:
        ConfigError: If the value is not a positive number.
    """
    value = params.get("timeout_seconds", default)
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ConfigError(
            f"Source '{source_name}' value 'timeout_seconds' must be a positive number."
        )
    return float(value)
