"""
Telegram Bot API health probe.

An awaitable callable for SystemMonitor.perform_health_check: each call hits
``getMe`` and returns the bot identity, or raises ProbeError with a
machine-readable code.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import aiohttp

from utils.fast_json import json_loads

logger = logging.getLogger(__name__)


class ProbeError(Exception):
    """Health probe failure carrying a machine-readable ``code``."""

    def __init__(self, message: str, code: str | int | None = None):
        super().__init__(message)
        self.code = code


class TelegramProbe:
    """
    Pings the Bot API with ``getMe``.

    Usage:
        probe = TelegramProbe(settings.bot_token)
        me = await probe()      # {"id": ..., "username": "tracker_bot", ...}
        await probe.close()
    """

    def __init__(
        self,
        token: str,
        base_url: str = "https://api.telegram.org",
        timeout: float = 10.0,
    ):
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session: aiohttp.ClientSession | None = None
        self._connect_lock = asyncio.Lock()

    @property
    def url(self) -> str:
        return f"{self.base_url}/bot{self.token}/getMe"

    async def _get_session(self) -> aiohttp.ClientSession:
        async with self._connect_lock:
            if self._session is None or self._session.closed:
                self._session = aiohttp.ClientSession(
                    timeout=aiohttp.ClientTimeout(total=self.timeout)
                )
            return self._session

    async def __call__(self) -> dict[str, Any]:
        session = await self._get_session()
        try:
            async with session.get(self.url) as resp:
                payload = json_loads(await resp.read())
        except asyncio.TimeoutError as e:
            raise ProbeError("Telegram API request timed out", code="ETIMEDOUT") from e
        except aiohttp.ClientError as e:
            raise ProbeError(str(e) or type(e).__name__, code=type(e).__name__) from e
        except ValueError as e:
            raise ProbeError("Invalid JSON from Telegram API", code="EBADRESPONSE") from e

        if not isinstance(payload, dict) or not payload.get("ok"):
            description = "unknown error"
            code = None
            if isinstance(payload, dict):
                description = payload.get("description", description)
                code = payload.get("error_code")
            raise ProbeError(f"Telegram API error: {description}", code=code)

        logger.debug("getMe OK for @%s", payload["result"].get("username"))
        return payload["result"]

    async def close(self) -> None:
        """Close the client session."""
        if self._session:
            await self._session.close()
            self._session = None
