import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, Iterable, Mapping, Optional

import aiohttp

from myth_oracle.utils.errors import SourceUnavailable

_DEFAULT_TIMEOUT = aiohttp.ClientTimeout(total=10, connect=5, sock_connect=5, sock_read=10)


class SafeSession:
    """
    Shared aiohttp session for the price providers:
      - lazy, concurrency-safe creation
      - one timeout policy for every provider
      - retries with backoff on 429/5xx (honours Retry-After)
    """
    def __init__(
        self,
        *,
        timeout: aiohttp.ClientTimeout = _DEFAULT_TIMEOUT,
        max_connections: int = 20,
        headers: Optional[Mapping[str, str]] = None,
        retry_statuses: Iterable[int] = (429, 500, 502, 503, 504),
        max_retries: int = 1,
        retry_backoff_base: float = 0.5,
    ):
        self._session: Optional[aiohttp.ClientSession] = None
        self._timeout = timeout
        self._max_connections = max_connections
        self._headers = {"accept": "application/json", **dict(headers or {})}
        self._retry_statuses = set(retry_statuses)
        self._max_retries = max_retries
        self._retry_backoff_base = retry_backoff_base
        self._lock = asyncio.Lock()

    async def _ensure(self) -> aiohttp.ClientSession:
        if self._session and not self._session.closed:
            return self._session
        async with self._lock:
            if self._session and not self._session.closed:
                return self._session
            self._session = aiohttp.ClientSession(
                timeout=self._timeout,
                connector=aiohttp.TCPConnector(limit=self._max_connections, enable_cleanup_closed=True),
                headers=self._headers,
            )
            logging.debug("[SafeSession] Created session")
            return self._session

    async def close(self):
        if self._session and not self._session.closed:
            try:
                await self._session.close()
                logging.debug("[SafeSession] Closed session successfully.")
            except Exception as e:
                logging.warning(f"[SafeSession] Failed to close session: {e}")
        self._session = None

    async def __aenter__(self) -> "SafeSession":
        await self._ensure()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def _retry_sleep(self, attempt: int, retry_after: Optional[float]) -> None:
        if retry_after is not None:
            await asyncio.sleep(retry_after)
        else:
            await asyncio.sleep(self._retry_backoff_base * (2 ** attempt))

    @asynccontextmanager
    async def request(self, method: str, url: str, **kwargs: Any):
        """
        Usage:
            async with safe.request("GET", url, params=...) as resp:
                data = await resp.json()
        """
        sess = await self._ensure()
        attempt = 0
        while True:
            try:
                resp = await sess.request(method, url, **kwargs)
            except aiohttp.ClientError:
                if attempt < self._max_retries:
                    await self._retry_sleep(attempt, None)
                    attempt += 1
                    continue
                raise
            if resp.status in self._retry_statuses and attempt < self._max_retries:
                retry_after = None
                ra = resp.headers.get("Retry-After")
                if ra:
                    try:
                        retry_after = float(ra)
                    except ValueError:
                        retry_after = None
                resp.release()
                await self._retry_sleep(attempt, retry_after)
                attempt += 1
                continue
            try:
                yield resp
            finally:
                resp.release()
            break

    async def get_json(self, url: str, **kwargs: Any) -> Optional[Any]:
        """
        GET returning parsed JSON. An error status (after retries) raises
        SourceUnavailable; any other non-200 answer is None.
        """
        async with self.request("GET", url, **kwargs) as resp:
            if resp.status >= 400:
                raise SourceUnavailable(url, SourceUnavailable.TRANSPORT, f"HTTP {resp.status}")
            if resp.status != 200:
                logging.debug(f"[HTTP] {url} -> {resp.status}")
                return None
            return await resp.json(content_type=None)
