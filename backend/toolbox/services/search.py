import asyncio
import logging
from typing import Sequence

from toolbox.models.music_model import AggregateSearchData, SingleSearchData
from toolbox.services.tunehub import TuneHubClient

logger = logging.getLogger(__name__)


class MusicSearchService:
    def __init__(self, client: TuneHubClient, platforms: Sequence[str]):
        self.client = client
        self.platforms = list(platforms)

    async def search_platform(self, platform: str, keyword: str, page: int, page_size: int) -> SingleSearchData:
        results = await self.client.search(platform, keyword, page, page_size)
        logger.info(f"[{platform}] '{keyword}' page {page}: {len(results)} results")
        return SingleSearchData(
            keyword=keyword,
            platform=platform,
            page=page,
            pageSize=page_size,
            total=len(results),
            results=results,
        )

    async def search_all(self, keyword: str, page: int, page_size: int) -> AggregateSearchData:
        """Search every platform at once; one platform failing never sinks the rest."""
        outcomes = await asyncio.gather(
            *[self.client.search(platform, keyword, page, page_size) for platform in self.platforms],
            return_exceptions=True,
        )

        succeeded = []
        failed = []
        results_by_platform = {}
        for platform, outcome in zip(self.platforms, outcomes):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                logger.warning(f"[{platform}] 搜索失败: {outcome}")
                failed.append(platform)
                results_by_platform[platform] = []
            else:
                succeeded.append(platform)
                results_by_platform[platform] = outcome

        total = sum(len(items) for items in results_by_platform.values())
        logger.info(
            f"Aggregated search '{keyword}': {total} results, "
            f"ok={succeeded}, failed={failed}"
        )
        return AggregateSearchData(
            keyword=keyword,
            page=page,
            pageSize=page_size,
            total=total,
            platforms=succeeded,
            failedPlatforms=failed,
            resultsByPlatform=results_by_platform,
        )
