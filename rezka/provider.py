"""Provider facade wiring config, transport, caches and resolvers."""

from typing import Optional

import httpx

from rezka.cache import Store
from rezka.config import Config, get_config
from rezka.items import ItemAssembler
from rezka.models import (
    FullId, Item, QualitySize, SearchItem, SeasonEpisode, Stream,
    StreamDetails, TranslatorSwitch
)
from rezka.streams import StreamResolver
from rezka.transport import Transport
from rezka.translators import TranslatorSwitchResolver, apply_translator_switch


class RezkaProvider:
    """Entry point for everything the CLI needs.

    Use as an async context manager so the HTTP client gets closed.
    """

    name = "Rezka"

    def __init__(
        self,
        config: Config | None = None,
        client: httpx.AsyncClient | None = None,
        store: Store | None = None
    ):
        self.config = config or get_config()
        self.transport = Transport(self.config, client)
        self.store = store or Store()
        self.streams = StreamResolver(self.transport, self.store, self.config)
        self.items = ItemAssembler(self.transport, self.store, self.streams)
        self.translators = TranslatorSwitchResolver(self.streams)

    async def __aenter__(self) -> "RezkaProvider":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.transport.aclose()

    async def search(self, query: str) -> list[SearchItem]:
        return await self.items.search(query)

    async def fetch_item(
        self,
        full_id: FullId,
        translator_id: Optional[int] = None,
        season: Optional[int] = None,
        episode: Optional[int] = None
    ) -> Item:
        return await self.items.item(full_id, translator_id, season, episode)

    async def fetch_translator(
        self,
        item: Item,
        translator_id: int,
        state: Optional[SeasonEpisode] = None
    ) -> TranslatorSwitch:
        return await self.translators.switch(item, translator_id, state)

    async def switch_translator(
        self,
        item: Item,
        translator_id: int,
        state: Optional[SeasonEpisode] = None
    ) -> tuple[Item, TranslatorSwitch]:
        """Resolve a switch and return the merged item alongside the raw result."""
        result = await self.translators.switch(item, translator_id, state)
        return apply_translator_switch(item, translator_id, result), result

    async def fetch_stream_details(self, stream: Stream) -> StreamDetails:
        return await self.streams.stream_details(stream)

    async def fetch_download_size(self, stream: Stream, quality_id: int) -> QualitySize:
        return await self.streams.download_size(stream, quality_id)
