import logging
from typing import Any, Optional

import httpx

logger = logging.getLogger(__name__)


class SongLookupError(Exception):
    pass


class SongService:
    """Pass-through to the legacy QQ song lookup API."""

    def __init__(self, base_url: str, timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    async def lookup(self, word: str, n: Optional[str] = None) -> dict[str, Any]:
        params = {"word": word}
        if n is not None:
            params["n"] = n
        try:
            async with httpx.AsyncClient() as client:
                response = await client.get(f"{self.base_url}/API/qqdg/", params=params, timeout=self.timeout)
            payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise SongLookupError(f"song lookup failed: {e}") from e
        if not isinstance(payload, dict):
            raise SongLookupError(f"unexpected song lookup payload: {type(payload).__name__}")
        return payload
