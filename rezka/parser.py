"""Pure parsers for provider pages and AJAX payloads."""

import base64
import hashlib
import re
from itertools import product
from typing import Any

from bs4 import BeautifulSoup

from rezka.models import (
    BaseItem, Episode, EpisodeInfo, FullId, Quality,
    SearchItem, Season, Stream, Subtitle, Translator
)
from rezka.utils import to_bool

SEPARATOR = "//_//"

# Junk inserted after each separator in obfuscated payloads: base64 of every
# 2- and 3-character combination of these symbols.
_TRASH_TOKENS = frozenset(
    base64.b64encode("".join(chars).encode("utf-8")).decode("ascii")
    for n in (2, 3)
    for chars in product("@#!^$", repeat=n)
)

_QUALITY_RE = re.compile(r"\[([^\]]+)\]([^\[]*)")
_INIT_CDN_RE = re.compile(
    r"initCDN(?P<kind>Movies|Series)Events\(\s*(?P<id>\d+)\s*,\s*(?P<translator>\d+)\s*,"
    r"\s*(?P<a>\w+)\s*,\s*(?P<b>\w+)\s*,\s*(?P<c>\w+)"
)
_SCHEDULE_RE = re.compile(r"(\d+)\s*сезон\s*(\d+)\s*серия", re.IGNORECASE)
_YEAR_RE = re.compile(r"/year/(\d{4})/")


def _text(node: Any) -> str:
    return node.get_text(" ", strip=True) if node else ""


# ===== STREAMS =====

def decode_stream_url(raw: str) -> str:
    """Decode an obfuscated ``#h...`` payload; plain payloads pass through."""
    if not raw.startswith("#h"):
        return raw
    parts = raw[2:].split(SEPARATOR)
    cleaned = [parts[0]]
    for part in parts[1:]:
        if part[:4] in _TRASH_TOKENS:
            part = part[4:]
        cleaned.append(part)
    data = "".join(cleaned)
    return base64.b64decode(data + "=" * (-len(data) % 4)).decode("utf-8")


def _pick_urls(candidates: list[str]) -> tuple[str, str]:
    """Split ``a or b`` alternatives into (stream url, download url)."""
    stream_url = next((c for c in candidates if ".m3u8" in c), candidates[0])
    download_url = next((c for c in candidates if not c.endswith(".m3u8")), None)
    if download_url is None:
        download_url = re.sub(r":hls:manifest\.m3u8$", "", stream_url)
    return stream_url, download_url


def parse_qualities(raw: str) -> tuple[Quality, ...]:
    """Parse ``[720p]url or url,[1080p]url`` into qualities, in payload order."""
    qualities: list[Quality] = []
    for label, rest in _QUALITY_RE.findall(decode_stream_url(raw)):
        candidates = [c.strip() for c in rest.strip().rstrip(",").split(" or ") if c.strip()]
        if not candidates:
            continue
        stream_url, download_url = _pick_urls(candidates)
        qualities.append(Quality(
            id=len(qualities) + 1,
            label=label.strip(),
            stream_url=stream_url,
            download_url=download_url
        ))
    return tuple(qualities)


def parse_subtitles(raw: Any, languages: Any = None, default: Any = None) -> tuple[Subtitle, ...]:
    """Parse ``[English]url,[Русский]url`` subtitle lists."""
    if not raw or not isinstance(raw, str):
        return ()
    languages = languages if isinstance(languages, dict) else {}
    subtitles = []
    for label, rest in _QUALITY_RE.findall(raw):
        url = rest.strip().rstrip(",")
        if not url:
            continue
        label = label.strip()
        code = languages.get(label, label)
        subtitles.append(Subtitle(language=code, label=label, url=url, is_default=code == default))
    return tuple(subtitles)


def parse_stream(data: dict[str, Any]) -> Stream:
    """Build a canonical stream from an AJAX stream payload."""
    raw = data.get("url") or ""
    if not isinstance(raw, str):
        raw = ""
    return Stream(
        id=hashlib.sha1(raw.encode("utf-8")).hexdigest()[:16],
        qualities=parse_qualities(raw),
        thumbnails_url=data.get("thumbnails") or "",
        subtitles=parse_subtitles(data.get("subtitle"), data.get("subtitle_lns"), data.get("subtitle_def")),
    )


def parse_stream_seasons(seasons_html: str, episodes_html: str) -> tuple[Season, ...]:
    """Build the season tree from the two HTML fragments of a ``get_episodes`` payload.

    Seasons and episodes keep the order the provider sent them in.
    """
    seasons_soup = BeautifulSoup(seasons_html or "", "html.parser")
    episodes_soup = BeautifulSoup(episodes_html or "", "html.parser")

    by_season: dict[int, list[Episode]] = {}
    for li in episodes_soup.select(".b-simple_episode__item"):
        season = int(li["data-season_id"])
        by_season.setdefault(season, []).append(
            Episode(number=int(li["data-episode_id"]), title=_text(li))
        )

    seasons: list[Season] = []
    for li in seasons_soup.select(".b-simple_season__item"):
        number = int(li["data-tab_id"])
        seasons.append(Season(
            number=number,
            title=_text(li),
            episodes=tuple(by_season.get(number, ()))
        ))
    return tuple(seasons)


# ===== DOCUMENTS =====

def _parse_translators(soup: BeautifulSoup) -> list[Translator]:
    translators = []
    for li in soup.select("#translators-list .b-translator__item"):
        translator_id = li.get("data-translator_id")
        if not translator_id:
            continue
        translators.append(Translator(
            id=int(translator_id),
            title=li.get("title") or _text(li),
            is_camrip=to_bool(li.get("data-camrip")),
            is_ads=to_bool(li.get("data-ads")),
            is_director=to_bool(li.get("data-director"))
        ))
    if translators:
        return translators

    # Single-translator items have no list, only the player init call.
    for script in soup.find_all("script"):
        match = _INIT_CDN_RE.search(script.string or "")
        if not match:
            continue
        movie = match.group("kind") == "Movies"
        return [Translator(
            id=int(match.group("translator")),
            title="Default",
            is_camrip=movie and to_bool(match.group("a")),
            is_ads=movie and to_bool(match.group("b")),
            is_director=movie and to_bool(match.group("c"))
        )]
    return []


def parse_item_document_episodes(soup: BeautifulSoup) -> tuple[EpisodeInfo, ...]:
    """Parse the release schedule table of a series page."""
    episodes = []
    for row in soup.select(".b-post__schedule_table tr"):
        match = _SCHEDULE_RE.search(_text(row.select_one(".td-1")))
        if not match:
            continue
        episodes.append(EpisodeInfo(
            season=int(match.group(1)),
            episode=int(match.group(2)),
            title=_text(row.select_one(".td-2 b")),
            original_title=_text(row.select_one(".td-2 span")),
            date=_text(row.select_one(".td-4")),
            released=row.select_one(".td-5 .exists-episode") is not None
        ))
    return tuple(episodes)


def parse_item_document(soup: BeautifulSoup, full_id: FullId) -> BaseItem:
    """Parse an item page into metadata and its translator list."""
    og_type = soup.select_one('meta[property="og:type"]')
    kind = "movie" if og_type and og_type.get("content") == "video.movie" else "series"

    favs = soup.select_one("#ctrl_favs")
    poster = soup.select_one(".b-sidecover img")

    year = None
    for link in soup.select(".b-post__info a[href]"):
        match = _YEAR_RE.search(link["href"])
        if match:
            year = int(match.group(1))
            break

    return BaseItem(
        full_id=full_id,
        kind=kind,
        title=_text(soup.select_one(".b-post__title h1")),
        original_title=_text(soup.select_one(".b-post__origtitle")),
        description=_text(soup.select_one(".b-post__description_text")),
        poster=poster.get("src", "") if poster else "",
        year=year,
        favs_id=favs.get("value", "") if favs else "",
        translators=tuple(_parse_translators(soup)),
        episodes_info=parse_item_document_episodes(soup) if kind == "series" else ()
    )


def parse_search_document(soup: BeautifulSoup) -> list[SearchItem]:
    """Parse the first page of search results."""
    results: list[SearchItem] = []
    for node in soup.select(".b-content__inline_item"):
        url = node.get("data-url", "")
        try:
            full_id = FullId.from_url(url)
        except ValueError:
            continue
        cover = node.select_one(".b-content__inline_item-cover img")
        cat = node.select_one(".cat")
        kinds = [c for c in (cat.get("class") or []) if c != "cat"] if cat else []
        results.append(SearchItem(
            full_id=full_id,
            title=_text(node.select_one(".b-content__inline_item-link a")),
            cover=cover.get("src", "") if cover else "",
            kind=kinds[0] if kinds else full_id.type_id,
            misc=_text(node.select_one(".b-content__inline_item-link div"))
        ))
    return results
