"""Resolve 全民K歌 share links to the MP3 behind them."""
import json
import logging
import re
from typing import Any, Optional
from urllib.parse import urlparse

import httpx

from toolbox.models.ktv_model import KtvSong
from toolbox.services.transform import select

logger = logging.getLogger(__name__)

ALLOWED_HOST_SUFFIX = "kg.qq.com"
USER_AGENT = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 16_0 like Mac OS X) "
    "AppleWebKit/605.1.15 (KHTML, like Gecko) Version/16.0 Mobile/15E148 Safari/604.1"
)

_PAGE_DATA = re.compile(r"window\.__DATA__\s*=\s*(\{.*?\})\s*;?\s*</script>", re.S)
_PLAY_URL = re.compile(r'"playurl"\s*:\s*"([^"]+)"')
_SONG_NAME = re.compile(r'"song_name"\s*:\s*"([^"]*)"')


class KtvResolveError(Exception):
    pass


def is_share_link(url: str) -> bool:
    parsed = urlparse(url.strip())
    host = (parsed.hostname or "").lower()
    return parsed.scheme in ("http", "https") and (
        host == ALLOWED_HOST_SUFFIX or host.endswith("." + ALLOWED_HOST_SUFFIX)
    )


def extract_song(html: str) -> Optional[KtvSong]:
    """Pull the play URL and title out of a share page, or None if absent."""
    detail: Any = None
    match = _PAGE_DATA.search(html)
    if match:
        try:
            detail = select(json.loads(match.group(1)), "detail")
        except ValueError:
            logger.warning("share page data is not valid JSON, falling back to pattern search")

    if isinstance(detail, dict) and isinstance(detail.get("playurl"), str) and detail["playurl"]:
        name = detail.get("song_name")
        return KtvSong(url=detail["playurl"], songName=str(name) if name else None)

    url_match = _PLAY_URL.search(html)
    if not url_match:
        return None
    name_match = _SONG_NAME.search(html)
    return KtvSong(
        url=_unescape(url_match.group(1)),
        songName=_unescape(name_match.group(1)) if name_match else None,
    )


def _unescape(value: str) -> str:
    try:
        return json.loads(f'"{value}"')
    except ValueError:
        return value


class KtvService:
    def __init__(self, timeout: float = 10.0):
        self.timeout = timeout

    async def resolve(self, share_url: str) -> Optional[KtvSong]:
        if not is_share_link(share_url):
            raise KtvResolveError(f"not a share link: {share_url}")
        try:
            async with httpx.AsyncClient(follow_redirects=True) as client:
                response = await client.get(
                    share_url.strip(),
                    headers={"User-Agent": USER_AGENT},
                    timeout=self.timeout,
                )
        except httpx.HTTPError as e:
            raise KtvResolveError(f"failed to load share page: {e}") from e

        song = extract_song(response.text)
        if song is None:
            logger.info(f"No play URL found on {share_url}")
        return song
