"""Lazily created aiohttp session shared by the catalog adapters."""

from __future__ import annotations

import asyncio
from typing import Callable, Dict

import aiohttp


class SessionClient:
    """Owns one ClientSession, opened on first use and reopened after close."""

    def __init__(
        self,
        timeout: float,
        session_factory: Callable[..., aiohttp.ClientSession] | None = None,
    ):
        self._timeout = timeout
        self._session_factory = session_factory or aiohttp.ClientSession
        self._session: aiohttp.ClientSession | None = None
        self._session_lock = asyncio.Lock()

    async def _ensure_session(self) -> aiohttp.ClientSession:
        session = self._session
        if session is not None and not session.closed:
            return session

        async with self._session_lock:
            session = self._session
            if session is None or session.closed:
                self._session = self._session_factory(
                    headers=self._get_headers(),
                    timeout=aiohttp.ClientTimeout(total=self._timeout),
                )
            return self._session

    def _get_headers(self) -> Dict[str, str]:
        return {}

    async def close(self) -> None:
        """Close any open connections."""
        async with self._session_lock:
            session = self._session
            self._session = None
        if session is not None and not session.closed:
            await session.close()
