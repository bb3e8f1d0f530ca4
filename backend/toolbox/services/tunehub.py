import json
import logging
from typing import Any, Optional

import httpx

from toolbox.config import Settings
from toolbox.models.music_model import MethodConfig, SearchResultItem
from toolbox.services.template import render_object, to_text
from toolbox.services.transform import apply_transform

logger = logging.getLogger(__name__)


class TuneHubError(Exception):
    """Raised when TuneHub or a platform API cannot be reached or refuses."""


class TuneHubClient:
    """Explicitly configured access to the TuneHub API and the platforms behind it."""

    def __init__(self, api_key: Optional[str], base_url: str, timeout: float = 10.0):
        self.api_key = api_key or None
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "TuneHubClient":
        return cls(
            api_key=settings.TUNEHUB_API_KEY,
            base_url=settings.TUNEHUB_BASE_URL,
            timeout=settings.HTTP_TIMEOUT,
        )

    @property
    def configured(self) -> bool:
        return self.api_key is not None

    def _auth_headers(self) -> dict[str, str]:
        if not self.api_key:
            raise TuneHubError("TUNEHUB_API_KEY is not configured")
        return {"X-API-Key": self.api_key}

    async def fetch_method_config(self, platform: str, operation: str = "search") -> MethodConfig:
        url = f"{self.base_url}/v1/methods/{platform}/{operation}"
        try:
            async with httpx.AsyncClient() as client:
                response = await client.get(url, headers=self._auth_headers(), timeout=self.timeout)
            payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise TuneHubError(f"获取 {platform} 方法配置失败：{e}") from e

        if not isinstance(payload, dict) or payload.get("code") != 0 or not payload.get("data"):
            message = payload.get("message") if isinstance(payload, dict) else None
            raise TuneHubError(f"获取 {platform} 方法配置失败：{message or '无数据'}")

        try:
            return MethodConfig.model_validate(payload["data"])
        except ValueError as e:
            raise TuneHubError(f"{platform} 方法配置格式错误：{e}") from e

    async def invoke(self, config: MethodConfig, context: dict[str, Any]) -> str:
        """Send the interpolated request described by ``config``; return the raw body."""
        params = None
        if config.params:
            rendered = render_object(config.params, context)
            params = {key: to_text(value) for key, value in rendered.items()}

        content = None
        if config.body is not None:
            content = json.dumps(render_object(config.body, context), ensure_ascii=False).encode("utf-8")

        try:
            async with httpx.AsyncClient() as client:
                response = await client.request(
                    config.method.upper(),
                    config.url,
                    params=params,
                    headers={key: to_text(value) for key, value in (config.headers or {}).items()},
                    content=content,
                    timeout=self.timeout,
                )
        except httpx.HTTPError as e:
            raise TuneHubError(f"request to {config.url} failed: {e}") from e
        return response.text

    async def search(self, platform: str, keyword: str, page: int, limit: int) -> list[SearchResultItem]:
        """Search one platform; raises TuneHubError when the platform is unreachable."""
        config = await self.fetch_method_config(platform, "search")
        context = {
            "keyword": keyword,
            "page": page,
            "limit": limit,
            "pageSize": limit,
        }
        raw = await self.invoke(config, context)
        items = apply_transform(raw, config.transform, label=platform)
        return normalize_results(items, platform)

    async def parse(self, platform: str, song_id: str, quality: str) -> dict[str, Any]:
        """Ask TuneHub for the playable URL of one song; returns the raw payload."""
        headers = {"Content-Type": "application/json", **self._auth_headers()}
        async with httpx.AsyncClient() as client:
            response = await client.post(
                f"{self.base_url}/v1/parse",
                json={"platform": platform, "ids": song_id, "quality": quality},
                headers=headers,
                timeout=self.timeout,
            )
        return response.json()


def normalize_results(items: list[Any], platform: str) -> list[SearchResultItem]:
    results: list[SearchResultItem] = []
    for item in items:
        if not isinstance(item, dict):
            logger.warning(f"[{platform}] skipping non-object result: {item!r}")
            continue
        pic = item.get("pic")
        results.append(
            SearchResultItem(
                id=_field(item.get("id")),
                name=_field(item.get("name")),
                artist=_field(item.get("artist")),
                album=_field(item.get("album")),
                pic=to_text(pic) if pic not in (None, "") else None,
                platform=platform,
            )
        )
    return results


def _field(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, list):
        return "/".join(to_text(v) for v in value)
    return to_text(value)
