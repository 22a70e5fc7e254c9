"""Stream resolution against the provider's AJAX endpoint.

Public coroutines are wrapped in ``retrying``; the underscored versions do a
single attempt and are what the other resolvers compose, so retries never
multiply across layers.
"""

import asyncio
import logging
from typing import Any, Awaitable, Optional

from rezka.cache import Store
from rezka.config import Config
from rezka.errors import UpstreamError
from rezka.models import (
    EpisodesTree, QualitySize, SeasonEpisode, Stream, StreamDetails, Translator,
    find_season
)
from rezka.parser import parse_stream, parse_stream_seasons
from rezka.retry import RetryPolicy, retrying
from rezka.transport import AJAX_PATH, Transport
from rezka.utils import bytes_to_str

logger = logging.getLogger(__name__)

MOVIE_ERROR = "Unable to get movie stream details. Try again later."
EPISODE_ERROR = "Unable to get episode stream details. Try again later."
EPISODES_ERROR = "Unable to get episodes list. Try again later."


def _flag(value: bool) -> str:
    return str(int(value))


async def gather_all(*aws: Awaitable[Any]) -> list[Any]:
    """Run awaitables concurrently; on the first failure cancel the rest and re-raise it."""
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return await asyncio.gather(*tasks)
    except Exception:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


class StreamResolver:
    """Fetches and normalizes stream payloads, memoized through the store."""

    def __init__(self, transport: Transport, store: Store, config: Config):
        self.transport = transport
        self.store = store
        self.config = config
        self.retry_policy = RetryPolicy(
            max_retries=config.max_retries,
            retry_upstream_errors=config.retry_upstream_errors
        )

    async def _ajax(self, form: dict[str, str], default_error: str) -> dict[str, Any]:
        data = await self.transport.post_form(AJAX_PATH, form)
        if not data.get("success"):
            message = data.get("message") or default_error
            logger.debug("Provider declined %s: %s", form["action"], message)
            raise UpstreamError(message)
        return data

    # ===== MOVIES =====

    async def _movie_stream(self, item_id: int, favs_id: str, translator: Translator) -> Stream:
        async def compute() -> Stream:
            data = await self._ajax({
                "id": str(item_id),
                "translator_id": str(translator.id),
                "favs": favs_id,
                "is_camrip": _flag(translator.is_camrip),
                "is_ads": _flag(translator.is_ads),
                "is_director": _flag(translator.is_director),
                "action": "get_movie",
            }, MOVIE_ERROR)
            return parse_stream(data)

        return await self.store.movie_streams.get((item_id, translator.id), compute)

    @retrying
    async def movie_stream(self, item_id: int, favs_id: str, translator: Translator) -> Stream:
        """Stream of a movie for one translator."""
        return await self._movie_stream(item_id, favs_id, translator)

    # ===== SERIES =====

    async def _series_stream(
        self,
        item_id: int,
        translator_id: int,
        favs_id: str,
        season: int,
        episode: int
    ) -> Stream:
        async def compute() -> Stream:
            data = await self._ajax({
                "id": str(item_id),
                "translator_id": str(translator_id),
                "favs": favs_id,
                "season": str(season),
                "episode": str(episode),
                "action": "get_stream",
            }, EPISODE_ERROR)
            return parse_stream(data)

        if not self.config.cache_series_streams:
            return await compute()
        key = (item_id, translator_id, season, episode)
        return await self.store.series_streams.get(key, compute)

    @retrying
    async def series_stream(
        self,
        item_id: int,
        translator_id: int,
        favs_id: str,
        season: int,
        episode: int
    ) -> Stream:
        """Stream of one episode.

        Bypasses the cache unless ``Config.cache_series_streams`` is set.
        """
        return await self._series_stream(item_id, translator_id, favs_id, season, episode)

    async def _episodes_tree(
        self,
        item_id: int,
        translator_id: int,
        favs_id: str,
        season: Optional[int] = None,
        episode: Optional[int] = None
    ) -> EpisodesTree:
        async def compute() -> EpisodesTree:
            form = {
                "id": str(item_id),
                "translator_id": str(translator_id),
                "favs": favs_id,
                "action": "get_episodes",
            }
            if season is not None:
                form["season"] = str(season)
            if episode is not None:
                form["episode"] = str(episode)
            data = await self._ajax(form, EPISODES_ERROR)

            seasons = parse_stream_seasons(data.get("seasons") or "", data.get("episodes") or "")
            if not seasons or not seasons[0].episodes:
                raise UpstreamError(EPISODES_ERROR)
            # Provider order, not the smallest number.
            season_for = find_season(seasons, season) if season is not None else None
            if season_for is None or not season_for.episodes:
                season_for = seasons[0]
            stream_for = SeasonEpisode(
                season=season if season is not None else season_for.number,
                episode=episode if episode is not None else season_for.episodes[0].number
            )
            return EpisodesTree(seasons=seasons, stream=parse_stream(data), stream_for=stream_for)

        key = (item_id, translator_id, season, episode)
        return await self.store.episodes.get(key, compute)

    @retrying
    async def episodes_tree(
        self,
        item_id: int,
        translator_id: int,
        favs_id: str,
        season: Optional[int] = None,
        episode: Optional[int] = None
    ) -> EpisodesTree:
        """Whole season tree for a translator plus the stream of one episode.

        Without a hint the stream is for the first episode of the first
        season as the provider lists them.
        """
        return await self._episodes_tree(item_id, translator_id, favs_id, season, episode)

    # ===== DETAILS =====

    async def _download_size(self, stream: Stream, quality_id: int) -> QualitySize:
        quality = stream.quality(quality_id)

        async def compute() -> int:
            return await self.transport.content_length(quality.download_url)

        size = await self.store.sizes.get((stream.id, quality_id), compute)
        return QualitySize(id=quality_id, download_size=size, download_size_str=bytes_to_str(size))

    @retrying
    async def download_size(self, stream: Stream, quality_id: int) -> QualitySize:
        return await self._download_size(stream, quality_id)

    async def _thumbnails(self, stream: Stream) -> str:
        async def compute() -> str:
            return await self.transport.fetch_text(stream.thumbnails_url)

        return await self.store.thumbnails.get(stream.id, compute)

    @retrying
    async def thumbnails(self, stream: Stream) -> str:
        """Thumbnail sheet (WebVTT) of a stream."""
        return await self._thumbnails(stream)

    @retrying
    async def stream_details(self, stream: Stream) -> StreamDetails:
        """Thumbnails and the size of every quality, fetched concurrently.

        Any failing branch fails the whole call and no partial result is
        returned.
        """
        thumbnails, *sizes = await gather_all(
            self._thumbnails(stream),
            *(self._download_size(stream, q.id) for q in stream.qualities)
        )
        return StreamDetails(thumbnails=thumbnails, sizes=tuple(sizes))
