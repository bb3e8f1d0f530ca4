from typing import Optional
import logging

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from toolbox.api.errors import ApiError
from toolbox.config import settings
from toolbox.models.health_model import HealthResponse
from toolbox.models.ktv_model import KtvSong
from toolbox.models.music_model import (
    DEFAULT_QUALITY,
    VALID_PLATFORMS,
    VALID_QUALITIES,
    AggregateSearchData,
    ApiResponse,
    ParseResult,
    SingleSearchData,
)
from toolbox.services.ktv import KtvResolveError, KtvService, is_share_link
from toolbox.services.search import MusicSearchService
from toolbox.services.song import SongLookupError, SongService
from toolbox.services.tunehub import TuneHubClient, TuneHubError

logger = logging.getLogger(__name__)

router = APIRouter()


def _service(request: Request, name: str):
    service = getattr(request.app.state, name, None)
    if service is None:
        raise ApiError(503, f"{name} not initialized")
    return service


def get_tunehub_client(request: Request) -> TuneHubClient:
    return _service(request, "tunehub_client")


def get_search_service(request: Request) -> MusicSearchService:
    return _service(request, "search_service")


def get_song_service(request: Request) -> SongService:
    return _service(request, "song_service")


def get_ktv_service(request: Request) -> KtvService:
    return _service(request, "ktv_service")


def _require_api_key(client: TuneHubClient) -> None:
    if not client.configured:
        logger.error("TUNEHUB_API_KEY 未配置")
        raise ApiError(500, "服务器配置错误")


@router.get("/api/health", response_model=HealthResponse)
async def health_check(request: Request):
    client = getattr(request.app.state, "tunehub_client", None)
    search_service = getattr(request.app.state, "search_service", None)
    configured = client is not None and client.configured

    return HealthResponse(
        status="healthy" if configured and search_service is not None else "degraded",
        api_key_configured=configured,
        platforms=search_service.platforms if search_service is not None else [],
    )


@router.get("/api/music/search")
async def search_music(
    keyword: Optional[str] = None,
    platform: Optional[str] = None,
    page: int = Query(1, ge=1),
    page_size: Optional[int] = Query(None, alias="pageSize", ge=1),
    search_svc: MusicSearchService = Depends(get_search_service),
):
    """Search one platform when ``platform`` is given, otherwise all of them."""
    if not keyword:
        raise ApiError(400, "缺少搜索关键词")
    if platform is not None and platform not in VALID_PLATFORMS:
        raise ApiError(400, "不支持的平台")

    page_size = page_size or settings.DEFAULT_PAGE_SIZE
    if page_size > settings.MAX_PAGE_SIZE:
        raise ApiError(400, f"pageSize 不能超过 {settings.MAX_PAGE_SIZE}")

    _require_api_key(search_svc.client)

    try:
        if platform is not None:
            single: SingleSearchData = await search_svc.search_platform(platform, keyword, page, page_size)
            return ApiResponse[SingleSearchData](data=single)

        aggregate: AggregateSearchData = await search_svc.search_all(keyword, page, page_size)
        return ApiResponse[AggregateSearchData](data=aggregate)

    except TuneHubError as e:
        logger.error(f"[{platform}] 搜索失败: {e}")
        raise ApiError(500, "搜索失败")

    except Exception as e:
        logger.error(f"Search request failed: {str(e)}", exc_info=True)
        raise ApiError(500, "搜索失败")


@router.post("/api/music/parse")
async def parse_music(
    request: Request,
    tunehub: TuneHubClient = Depends(get_tunehub_client),
):
    _require_api_key(tunehub)

    try:
        body = await request.json()
    except ValueError:
        raise ApiError(400, "请求体格式错误")
    if not isinstance(body, dict):
        raise ApiError(400, "请求体格式错误")

    platform = body.get("platform")
    song_id = body.get("id")
    quality = body.get("quality", DEFAULT_QUALITY)

    if not platform or song_id in (None, ""):
        raise ApiError(400, "缺少必要参数 platform 或 id")
    if platform not in VALID_PLATFORMS:
        raise ApiError(400, "不支持的平台")
    if quality not in VALID_QUALITIES:
        raise ApiError(400, "不支持的音质")

    try:
        payload = await tunehub.parse(platform, str(song_id), quality)
    except Exception as e:
        logger.error(f"歌曲解析失败：{str(e)}", exc_info=True)
        raise ApiError(500, "解析失败")

    if not isinstance(payload, dict):
        logger.error(f"Unexpected parse payload: {payload!r}")
        raise ApiError(500, "解析失败")

    if payload.get("code") != 0:
        return JSONResponse(content={
            "code": payload.get("code", -1),
            "message": payload.get("message") or "解析失败",
        })

    data = payload.get("data")
    songs = data.get("data") if isinstance(data, dict) else None
    song = songs[0] if isinstance(songs, list) and songs else None
    if not isinstance(song, dict) or not song.get("success"):
        return JSONResponse(content={"code": -1, "message": "未找到歌曲信息或解析失败"})

    try:
        result = ParseResult.from_tunehub(song)
    except Exception as e:
        logger.error(f"歌曲解析失败：{str(e)}", exc_info=True)
        raise ApiError(500, "解析失败")

    logger.info(f"[{platform}] parsed {song_id} at {result.quality}")
    return ApiResponse[ParseResult](data=result)


@router.get("/api/song")
async def search_song(
    word: Optional[str] = None,
    song_svc: SongService = Depends(get_song_service),
):
    if not word:
        raise ApiError(400, "缺少搜索关键词")
    try:
        return await song_svc.lookup(word)
    except SongLookupError as e:
        logger.error(f"Song lookup failed: {e}")
        raise ApiError(500, "请求失败")


@router.get("/api/song/download")
async def download_song(
    word: Optional[str] = None,
    n: Optional[int] = Query(None, ge=1),
    song_svc: SongService = Depends(get_song_service),
):
    if not word:
        raise ApiError(400, "缺少搜索关键词")
    try:
        return await song_svc.lookup(word, str(n) if n is not None else None)
    except SongLookupError as e:
        logger.error(f"Song download lookup failed: {e}")
        raise ApiError(500, "请求失败")


@router.get("/api/ktv")
async def resolve_ktv(
    url: Optional[str] = None,
    ktv_svc: KtvService = Depends(get_ktv_service),
):
    if not url or not url.strip():
        raise ApiError(400, "请输入链接地址")
    if not is_share_link(url):
        raise ApiError(400, "请输入正确的链接格式")

    try:
        song: Optional[KtvSong] = await ktv_svc.resolve(url)
    except KtvResolveError as e:
        logger.error(f"K song resolve failed: {e}")
        raise ApiError(500, "下载失败，请检查链接是否正确或稍后重试")

    if song is None:
        return JSONResponse(content={"code": -1, "message": "获取下载链接失败"})
    return ApiResponse[KtvSong](data=song)
