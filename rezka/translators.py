"""Translator switching.

Given an already assembled item, work out what has to be fetched to show a
different translator (and season/episode), clamping requests that do not
exist under that translator. Results describe what changed; the item
itself is never modified, ``apply_translator_switch`` builds the new value.
"""

import logging
from typing import Optional

from rezka.errors import NotFoundError
from rezka.items import seasons_with_stream
from rezka.models import (
    Item, ItemMovie, ItemSeries, LeafStream, MovieSwitch, SeasonEpisode,
    SeriesSwitch, Stream, TranslatorSwitch, find_season
)
from rezka.retry import retrying
from rezka.streams import StreamResolver

logger = logging.getLogger(__name__)


class TranslatorSwitchResolver:
    """Decides which streams a translator switch needs."""

    def __init__(self, streams: StreamResolver):
        self.streams = streams
        self.retry_policy = streams.retry_policy

    async def _movie(self, item: ItemMovie, translator_id: int) -> MovieSwitch:
        if item.slot(translator_id).stream is not None:
            return MovieSwitch()
        translator = item.base.translator(translator_id)
        stream = await self.streams._movie_stream(item.base.id, item.base.favs_id, translator)
        return MovieSwitch(stream=stream)

    async def _series(self, item: ItemSeries, translator_id: int, state: SeasonEpisode) -> SeriesSwitch:
        base = item.base
        target_season, target_episode = state.season, state.episode
        initial = None

        seasons = item.slot(translator_id).seasons
        if seasons is None:
            tree = await self.streams._episodes_tree(base.id, translator_id, base.favs_id)
            seasons = initial = seasons_with_stream(tree)

        if not seasons or not seasons[0].episodes:
            raise NotFoundError(f"Translator {translator_id} has no episodes")

        season = find_season(seasons, target_season)
        episode = None
        if season is None:
            logger.debug("Season %s missing for translator %s, clamping", target_season, translator_id)
            season = seasons[0]
            episode = season.episodes[0]
            target_season, target_episode = season.number, episode.number
        else:
            episode = season.find_episode(target_episode)
        if episode is None:
            logger.debug("Episode %s missing in season %s, clamping", target_episode, target_season)
            if not season.episodes:
                raise NotFoundError(f"Season {season.number} has no episodes")
            episode = season.episodes[0]
            target_episode = episode.number

        state_to = SeasonEpisode(season=target_season, episode=target_episode)
        next_leaf = None
        if episode.stream is None:
            stream = await self.streams._series_stream(
                base.id, translator_id, base.favs_id, state_to.season, state_to.episode
            )
            next_leaf = LeafStream(stream=stream, stream_for=state_to)
        return SeriesSwitch(state_to=state_to, initial=initial, next=next_leaf)

    @retrying
    async def movie(self, item: ItemMovie, translator_id: int) -> MovieSwitch:
        return await self._movie(item, translator_id)

    @retrying
    async def series(self, item: ItemSeries, translator_id: int, state: SeasonEpisode) -> SeriesSwitch:
        return await self._series(item, translator_id, state)

    async def switch(
        self,
        item: Item,
        translator_id: int,
        state: Optional[SeasonEpisode] = None
    ) -> TranslatorSwitch:
        """Resolve a translator switch; ``state`` is the season/episode wanted on series.

        Arguments are checked before anything is fetched, so a bad translator
        or a missing target fails once instead of being retried.
        """
        item.base.translator(translator_id)
        if item.kind == "movie":
            return await self.movie(item, translator_id)
        if state is None:
            raise ValueError("A season and episode are required to switch a series translator")
        return await self.series(item, translator_id, state)


def apply_translator_switch(item: Item, translator_id: int, result: TranslatorSwitch) -> Item:
    """Merge a switch result into a new item value."""
    if item.kind == "movie":
        if result.kind != "movie":
            raise ValueError("Series switch result applied to a movie")
        if result.stream is None:
            return item
        return item.with_stream(translator_id, result.stream)

    if result.kind != "series":
        raise ValueError("Movie switch result applied to a series")
    if result.initial is not None:
        item = item.with_seasons(translator_id, result.initial)
    if result.next is not None:
        item = item.with_episode_stream(translator_id, result.next.stream_for, result.next.stream)
    return item


def find_stream(
    item: Item,
    translator_id: int,
    target: Optional[SeasonEpisode] = None
) -> Optional[Stream]:
    """Stream stored for a translator (and season/episode on series), if fetched."""
    if item.kind == "movie":
        return item.slot(translator_id).stream
    if target is None:
        raise ValueError("A season and episode are required to look up a series stream")
    seasons = item.slot(translator_id).seasons
    if seasons is None:
        return None
    season = find_season(seasons, target.season)
    if season is None:
        raise NotFoundError(f"Season {target.season} not found for translator {translator_id}")
    episode = season.find_episode(target.episode)
    if episode is None:
        raise NotFoundError(f"Episode {target.episode} not found in season {target.season}")
    return episode.stream
