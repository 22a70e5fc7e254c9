"""Tests for the page and payload parsers."""

import base64

from bs4 import BeautifulSoup

from rezka.models import FullId
from rezka.parser import (
    decode_stream_url,
    parse_item_document,
    parse_qualities,
    parse_search_document,
    parse_stream,
    parse_stream_seasons,
    parse_subtitles,
)

from .conftest import episodes_payload, item_html, quality_url, stream_payload

FULL_ID = FullId(id=123, type_id="films", genre_id="drama", slug="123-test-item-2021")


def soup(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "html.parser")


def test_full_id_from_url():
    full_id = FullId.from_url("https://rezka.test/series/comedy/4567-some-show-2019.html")
    assert full_id == FullId(id=4567, type_id="series", genre_id="comedy", slug="4567-some-show-2019")
    assert full_id.uri == "/series/comedy/4567-some-show-2019.html"


def test_qualities_keep_payload_order_and_split_urls():
    qualities = parse_qualities(quality_url("a"))

    assert [q.label for q in qualities] == ["720p", "1080p"]
    assert [q.id for q in qualities] == [1, 2]
    assert qualities[0].stream_url == "https://cdn.test/a/720.mp4:hls:manifest.m3u8"
    assert qualities[0].download_url == "https://cdn.test/a/720.mp4"


def test_download_url_derived_from_manifest_when_no_alternative():
    (quality,) = parse_qualities("[480p]https://cdn.test/x/480.mp4:hls:manifest.m3u8")
    assert quality.download_url == "https://cdn.test/x/480.mp4"


def test_obfuscated_payload_is_decoded():
    plain = quality_url("secret")
    encoded = base64.b64encode(plain.encode()).decode()
    junk_a = base64.b64encode(b"@#").decode()
    junk_b = base64.b64encode(b"$$!").decode()
    raw = "#h" + encoded[:12] + "//_//" + junk_a + encoded[12:40] + "//_//" + junk_b + encoded[40:]

    assert decode_stream_url(raw) == plain
    assert [q.label for q in parse_qualities(raw)] == ["720p", "1080p"]


def test_plain_payload_passes_through():
    assert decode_stream_url("[360p]https://cdn.test/a.mp4") == "[360p]https://cdn.test/a.mp4"


def test_subtitles_with_language_codes():
    subtitles = parse_subtitles(
        "[English]https://sub.test/en.vtt,[Русский]https://sub.test/ru.vtt",
        {"English": "en", "Русский": "ru"},
        "ru",
    )
    assert [(s.language, s.label, s.url, s.is_default) for s in subtitles] == [
        ("en", "English", "https://sub.test/en.vtt", False),
        ("ru", "Русский", "https://sub.test/ru.vtt", True),
    ]
    assert parse_subtitles(False) == ()


def test_stream_id_is_stable_for_same_payload():
    a = parse_stream(stream_payload("same"))
    b = parse_stream(stream_payload("same"))
    c = parse_stream(stream_payload("other"))

    assert a == b
    assert a.id != c.id
    assert a.thumbnails_url == "/ajax/thumbs/same/"


def test_stream_without_url_has_no_qualities():
    assert parse_stream({"success": True, "url": False}).qualities == ()


def test_seasons_keep_provider_order():
    payload = episodes_payload([(3, [5, 2]), (1, [1])])
    seasons = parse_stream_seasons(payload["seasons"], payload["episodes"])

    assert [s.number for s in seasons] == [3, 1]
    assert [e.number for e in seasons[0].episodes] == [5, 2]
    assert seasons[0].title == "Season 3"
    assert seasons[0].episodes[0].title == "Episode 5"
    assert all(e.stream is None for s in seasons for e in s.episodes)


def test_movie_document():
    base = parse_item_document(soup(item_html("movie")), FULL_ID)

    assert base.kind == "movie"
    assert base.title == "Test Item"
    assert base.original_title == "Original Test Item"
    assert base.description == "About Test Item."
    assert base.poster == "https://img.test/poster.jpg"
    assert base.year == 2021
    assert base.favs_id == "favs-token"
    assert [t.id for t in base.translators] == [10, 20]
    assert base.translators[1].is_ads and not base.translators[0].is_ads
    assert base.episodes_info == ()


def test_series_document_with_schedule():
    html = item_html("series").replace("</body>", """
      <table class="b-post__schedule_table">
        <tr><td class="td-1">1 сезон 2 серия</td><td class="td-2"><b>Second</b><span>Second EN</span></td>
            <td class="td-4">1 января 2021</td><td class="td-5"><i class="exists-episode"></i></td></tr>
        <tr><td class="td-1">1 сезон 3 серия</td><td class="td-2"><b>Third</b></td>
            <td class="td-4">8 января 2021</td><td class="td-5"></td></tr>
      </table>
    </body>""")
    base = parse_item_document(soup(html), FULL_ID)

    assert base.kind == "series"
    assert [(e.season, e.episode, e.title, e.released) for e in base.episodes_info] == [
        (1, 2, "Second", True),
        (1, 3, "Third", False),
    ]
    assert base.episodes_info[0].original_title == "Second EN"


def test_single_translator_from_player_script():
    html = item_html("movie", translators=[]).replace(
        "</body>",
        "<script>$(function () { sof.tv.initCDNMoviesEvents(123, 56, 1, 0, 0, 'rezka.test', false, {}); });</script></body>",
    )
    base = parse_item_document(soup(html), FULL_ID)

    assert len(base.translators) == 1
    translator = base.translators[0]
    assert translator.id == 56
    assert translator.is_camrip and not translator.is_ads and not translator.is_director


def test_search_document():
    html = """
    <div class="b-content__inline_items">
      <div class="b-content__inline_item" data-id="1" data-url="https://rezka.test/films/drama/1-first.html">
        <div class="b-content__inline_item-cover"><a><img src="https://img.test/1.jpg"><i class="entity">x</i>
          <i class="cat films"></i></a></div>
        <div class="b-content__inline_item-link"><a href="#">First</a><div>2020, USA, Drama</div></div>
      </div>
      <div class="b-content__inline_item" data-id="2" data-url="https://rezka.test/series/comedy/2-second.html">
        <div class="b-content__inline_item-link"><a href="#">Second</a></div>
      </div>
      <div class="b-content__inline_item" data-url="https://rezka.test/broken"></div>
    </div>
    """
    results = parse_search_document(soup(html))

    assert [r.title for r in results] == ["First", "Second"]
    assert results[0].kind == "films"
    assert results[0].cover == "https://img.test/1.jpg"
    assert results[0].misc == "2020, USA, Drama"
    assert results[1].kind == "series"
    assert results[1].full_id.id == 2
