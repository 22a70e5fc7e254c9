"""Data models for Rezka CLI.

Every model is a frozen dataclass. Items are persistent values: updates build
new values with ``dataclasses.replace`` and the original is left untouched.
"""

import re
from dataclasses import dataclass, field, replace
from typing import Literal, Optional, Union

from rezka.errors import NotFoundError

_FULL_ID_RE = re.compile(r"/(?P<type>[\w-]+)/(?P<genre>[\w-]+)/(?P<slug>(?P<id>\d+)-?[\w-]*)\.html")


@dataclass(frozen=True)
class FullId:
    """Everything needed to address an item page on the provider."""
    id: int
    type_id: str
    genre_id: str
    slug: str

    @property
    def uri(self) -> str:
        return f"/{self.type_id}/{self.genre_id}/{self.slug}.html"

    @classmethod
    def from_url(cls, url: str) -> "FullId":
        """Parse an item page URL or path such as ``/films/drama/123-name.html``."""
        match = _FULL_ID_RE.search(url)
        if not match:
            raise ValueError(f"Not an item URL: {url}")
        return cls(
            id=int(match.group("id")),
            type_id=match.group("type"),
            genre_id=match.group("genre"),
            slug=match.group("slug"),
        )


@dataclass(frozen=True)
class Translator:
    """Audio/subtitle source for the same content."""
    id: int
    title: str
    is_camrip: bool = False
    is_ads: bool = False
    is_director: bool = False


@dataclass(frozen=True)
class Quality:
    """One resolution of a stream."""
    id: int
    label: str  # "720p", "1080p Ultra", etc.
    stream_url: str
    download_url: str


@dataclass(frozen=True)
class Subtitle:
    """Subtitle track."""
    language: str
    label: str
    url: str
    is_default: bool = False


@dataclass(frozen=True)
class Stream:
    """Resolved playable stream."""
    id: str
    qualities: tuple[Quality, ...]
    thumbnails_url: str = ""
    subtitles: tuple[Subtitle, ...] = ()

    def quality(self, quality_id: int) -> Quality:
        for q in self.qualities:
            if q.id == quality_id:
                return q
        raise NotFoundError(f"Quality {quality_id} not found in stream {self.id}")


@dataclass(frozen=True)
class QualitySize:
    """Download size of one quality."""
    id: int
    download_size: int
    download_size_str: str


@dataclass(frozen=True)
class StreamDetails:
    """Lazily fetched extras of a stream."""
    thumbnails: str
    sizes: tuple[QualitySize, ...]


@dataclass(frozen=True)
class SeasonEpisode:
    """A (season, episode) position."""
    season: int
    episode: int


@dataclass(frozen=True)
class Episode:
    number: int
    title: str
    stream: Optional[Stream] = None


@dataclass(frozen=True)
class Season:
    number: int
    title: str
    episodes: tuple[Episode, ...] = ()

    def find_episode(self, number: int) -> Optional[Episode]:
        for e in self.episodes:
            if e.number == number:
                return e
        return None


def find_season(seasons: tuple[Season, ...], number: int) -> Optional[Season]:
    for s in seasons:
        if s.number == number:
            return s
    return None


@dataclass(frozen=True)
class EpisodeInfo:
    """Row of the release schedule shown on a series page."""
    season: int
    episode: int
    title: str
    original_title: str = ""
    date: str = ""
    released: bool = True


@dataclass(frozen=True)
class BaseItem:
    """Item metadata parsed from its page, before any stream is resolved."""
    full_id: FullId
    kind: Literal["movie", "series"]
    title: str
    favs_id: str
    translators: tuple[Translator, ...]
    original_title: str = ""
    description: str = ""
    poster: str = ""
    year: Optional[int] = None
    episodes_info: tuple[EpisodeInfo, ...] = ()

    @property
    def id(self) -> int:
        return self.full_id.id

    def translator(self, translator_id: int) -> Translator:
        for t in self.translators:
            if t.id == translator_id:
                return t
        raise NotFoundError(f"Translator {translator_id} not found on item {self.id}")


@dataclass(frozen=True)
class MovieStreamSlot:
    translator_id: int
    stream: Optional[Stream] = None


@dataclass(frozen=True)
class SeriesStreamSlot:
    translator_id: int
    seasons: Optional[tuple[Season, ...]] = None


def _slot_index(slots: tuple, translator_id: int) -> int:
    for i, slot in enumerate(slots):
        if slot.translator_id == translator_id:
            return i
    raise NotFoundError(f"No stream slot for translator {translator_id}")


def _replace_slot(slots: tuple, index: int, slot) -> tuple:
    return slots[:index] + (slot,) + slots[index + 1:]


@dataclass(frozen=True)
class ItemMovie:
    """Movie with one stream slot per translator."""
    base: BaseItem
    streams: tuple[MovieStreamSlot, ...]
    kind: Literal["movie"] = field(default="movie", init=False)

    def slot(self, translator_id: int) -> MovieStreamSlot:
        return self.streams[_slot_index(self.streams, translator_id)]

    def with_stream(self, translator_id: int, stream: Stream) -> "ItemMovie":
        index = _slot_index(self.streams, translator_id)
        slot = MovieStreamSlot(translator_id=translator_id, stream=stream)
        return replace(self, streams=_replace_slot(self.streams, index, slot))


@dataclass(frozen=True)
class ItemSeries:
    """Series with an optional season tree per translator."""
    base: BaseItem
    streams: tuple[SeriesStreamSlot, ...]
    kind: Literal["series"] = field(default="series", init=False)

    def slot(self, translator_id: int) -> SeriesStreamSlot:
        return self.streams[_slot_index(self.streams, translator_id)]

    def with_seasons(self, translator_id: int, seasons: tuple[Season, ...]) -> "ItemSeries":
        index = _slot_index(self.streams, translator_id)
        slot = SeriesStreamSlot(translator_id=translator_id, seasons=seasons)
        return replace(self, streams=_replace_slot(self.streams, index, slot))

    def with_episode_stream(
        self,
        translator_id: int,
        target: SeasonEpisode,
        stream: Stream
    ) -> "ItemSeries":
        seasons = self.slot(translator_id).seasons
        if seasons is None:
            raise NotFoundError(f"Translator {translator_id} has no fetched seasons")
        if find_season(seasons, target.season) is None:
            raise NotFoundError(f"Season {target.season} not found for translator {translator_id}")

        new_seasons = []
        for s in seasons:
            if s.number == target.season:
                if s.find_episode(target.episode) is None:
                    raise NotFoundError(f"Episode {target.episode} not found in season {s.number}")
                s = replace(s, episodes=tuple(
                    replace(e, stream=stream) if e.number == target.episode else e
                    for e in s.episodes
                ))
            new_seasons.append(s)
        return self.with_seasons(translator_id, tuple(new_seasons))


Item = Union[ItemMovie, ItemSeries]


@dataclass(frozen=True)
class EpisodesTree:
    """Full season tree of a translator plus one resolved leaf."""
    seasons: tuple[Season, ...]
    stream: Stream
    stream_for: SeasonEpisode


@dataclass(frozen=True)
class LeafStream:
    stream: Stream
    stream_for: SeasonEpisode


@dataclass(frozen=True)
class MovieSwitch:
    """Outcome of switching translator on a movie. ``stream`` is None on a cache hit."""
    stream: Optional[Stream] = None
    kind: Literal["movie"] = field(default="movie", init=False)


@dataclass(frozen=True)
class SeriesSwitch:
    """Outcome of switching translator/season/episode on a series."""
    state_to: SeasonEpisode
    initial: Optional[tuple[Season, ...]] = None
    next: Optional[LeafStream] = None
    kind: Literal["series"] = field(default="series", init=False)


TranslatorSwitch = Union[MovieSwitch, SeriesSwitch]


@dataclass(frozen=True)
class SearchItem:
    """Search result entry."""
    full_id: FullId
    title: str
    cover: str
    kind: str  # "films", "series", "cartoons", "animation"
    misc: str = ""
