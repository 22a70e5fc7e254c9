"""Item assembly: page document plus the stream of the active translator."""

import logging
from typing import Optional

from bs4 import BeautifulSoup

from rezka.cache import Store
from rezka.errors import NotFoundError
from rezka.models import (
    BaseItem, Episode, EpisodesTree, FullId, Item, ItemMovie, ItemSeries,
    MovieStreamSlot, SearchItem, Season, SeriesStreamSlot, Translator
)
from rezka.parser import parse_item_document, parse_search_document
from rezka.retry import retrying
from rezka.streams import StreamResolver
from rezka.transport import Transport

logger = logging.getLogger(__name__)


def seasons_with_stream(tree: EpisodesTree) -> tuple[Season, ...]:
    """The tree's seasons with only the ``stream_for`` leaf filled in."""
    target = tree.stream_for
    return tuple(
        Season(
            number=s.number,
            title=s.title,
            episodes=tuple(
                Episode(
                    number=e.number,
                    title=e.title,
                    stream=tree.stream if (s.number, e.number) == (target.season, target.episode) else None
                )
                for e in s.episodes
            )
        )
        for s in tree.seasons
    )


def select_translator(base: BaseItem, translator_id: Optional[int]) -> Translator:
    """Requested translator when the item has it, else the first one on the page."""
    if not base.translators:
        raise NotFoundError(f"Item {base.id} has no translators")
    for t in base.translators:
        if t.id == translator_id:
            return t
    return base.translators[0]


class ItemAssembler:
    """Builds movie and series items."""

    def __init__(self, transport: Transport, store: Store, streams: StreamResolver):
        self.transport = transport
        self.store = store
        self.streams = streams
        self.retry_policy = streams.retry_policy

    async def _document(self, full_id: FullId) -> BeautifulSoup:
        async def compute() -> BeautifulSoup:
            return await self.transport.fetch_document(full_id.uri)

        return await self.store.documents.get(full_id.id, compute)

    async def _item_movie(self, base: BaseItem, translator: Translator) -> ItemMovie:
        stream = await self.streams._movie_stream(base.id, base.favs_id, translator)
        return ItemMovie(
            base=base,
            streams=tuple(
                MovieStreamSlot(translator_id=t.id, stream=stream if t.id == translator.id else None)
                for t in base.translators
            )
        )

    async def _item_series(
        self,
        base: BaseItem,
        translator: Translator,
        season: Optional[int] = None,
        episode: Optional[int] = None
    ) -> ItemSeries:
        tree = await self.streams._episodes_tree(base.id, translator.id, base.favs_id, season, episode)
        seasons = seasons_with_stream(tree)
        return ItemSeries(
            base=base,
            streams=tuple(
                SeriesStreamSlot(translator_id=t.id, seasons=seasons if t.id == translator.id else None)
                for t in base.translators
            )
        )

    @retrying
    async def item(
        self,
        full_id: FullId,
        translator_id: Optional[int] = None,
        season: Optional[int] = None,
        episode: Optional[int] = None
    ) -> Item:
        """Fetch an item with the stream of its active translator resolved."""
        document = await self._document(full_id)
        base = parse_item_document(document, full_id)
        translator = select_translator(base, translator_id)
        logger.debug("Item %s (%s) using translator %s", base.id, base.kind, translator.id)

        if base.kind == "movie":
            return await self._item_movie(base, translator)
        return await self._item_series(base, translator, season, episode)

    @retrying
    async def search(self, query: str) -> list[SearchItem]:
        """First page of search results."""
        params = {"q": query, "do": "search", "subaction": "search"}
        document = await self.transport.fetch_document("/search/", params=params)
        return parse_search_document(document)
