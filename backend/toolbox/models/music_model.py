from typing import Any, Generic, Literal, Optional, TypeVar, get_args

from pydantic import BaseModel, ConfigDict, Field

MusicPlatform = Literal["netease", "qq", "kuwo"]
MusicQuality = Literal["128k", "320k", "flac", "flac24bit"]

VALID_PLATFORMS: tuple[str, ...] = get_args(MusicPlatform)
VALID_QUALITIES: tuple[str, ...] = get_args(MusicQuality)
DEFAULT_QUALITY = "320k"

T = TypeVar("T")


class MethodConfig(BaseModel):
    """Request template for one platform operation, as served by TuneHub."""

    model_config = ConfigDict(extra="ignore")

    type: str = "http"
    method: str = "GET"
    url: str
    params: Optional[dict[str, Any]] = None
    body: Optional[Any] = None
    headers: Optional[dict[str, Any]] = None
    transform: Optional[Any] = None


class SearchResultItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    artist: str
    album: str
    pic: Optional[str] = None
    platform: MusicPlatform


class SingleSearchData(BaseModel):
    keyword: str
    platform: MusicPlatform
    page: int
    pageSize: int
    total: int = Field(..., description="Number of results returned by the platform")
    results: list[SearchResultItem]


class AggregateSearchData(BaseModel):
    keyword: str
    page: int
    pageSize: int
    total: int = Field(..., description="Sum of result counts over every attempted platform")
    platforms: list[MusicPlatform] = Field(..., description="Platforms that answered")
    failedPlatforms: list[MusicPlatform] = Field(..., description="Platforms whose request failed")
    resultsByPlatform: dict[str, list[SearchResultItem]]


class ParseResult(BaseModel):
    id: str
    name: str
    artist: str
    album: str
    pic: Optional[str] = None
    url: str
    lrc: Optional[str] = None
    quality: Optional[str] = None

    @classmethod
    def from_tunehub(cls, song: dict[str, Any]) -> "ParseResult":
        info = song.get("info")
        if not isinstance(info, dict):
            info = {}
        return cls(
            id=str(song.get("id", "")),
            name=str(info.get("name", "")),
            artist=str(info.get("artist", "")),
            album=str(info.get("album", "")),
            pic=_optional_text(song.get("cover")),
            url=str(song.get("url", "")),
            lrc=_optional_text(song.get("lyrics")),
            quality=_optional_text(song.get("actualQuality")),
        )


def _optional_text(value: Any) -> Optional[str]:
    if value is None or isinstance(value, (dict, list)):
        return None
    return str(value)


class ApiResponse(BaseModel, Generic[T]):
    code: int = 0
    message: str = "success"
    data: Optional[T] = None
