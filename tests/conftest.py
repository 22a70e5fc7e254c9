"""Shared fixtures: a fake provider served through httpx.MockTransport."""

import asyncio
from collections import Counter
from urllib.parse import parse_qs

import httpx
import pytest

from rezka.config import Config
from rezka.provider import RezkaProvider

BASE_URL = "https://rezka.test"


def quality_url(name: str) -> str:
    return (
        f"[720p]https://cdn.test/{name}/720.mp4:hls:manifest.m3u8 or https://cdn.test/{name}/720.mp4,"
        f"[1080p]https://cdn.test/{name}/1080.mp4:hls:manifest.m3u8 or https://cdn.test/{name}/1080.mp4"
    )


def stream_payload(name: str = "stream", **extra) -> dict:
    return {
        "success": True,
        "message": "",
        "url": quality_url(name),
        "thumbnails": f"/ajax/thumbs/{name}/",
        **extra,
    }


def episodes_payload(tree: list[tuple[int, list[int]]], name: str = "tree") -> dict:
    """``tree`` is [(season, [episodes...]), ...] in provider order."""
    seasons_html = "".join(
        f'<li class="b-simple_season__item" data-tab_id="{s}">Season {s}</li>' for s, _ in tree
    )
    episodes_html = "".join(
        f'<ul id="simple-episodes-list-{s}" class="b-simple_episodes__list">'
        + "".join(
            f'<li class="b-simple_episode__item" data-id="1" data-season_id="{s}" data-episode_id="{e}">Episode {e}</li>'
            for e in episodes
        )
        + "</ul>"
        for s, episodes in tree
    )
    return {**stream_payload(name), "seasons": seasons_html, "episodes": episodes_html}


def item_html(
    kind: str = "movie",
    translators: list[tuple[int, str]] | None = None,
    title: str = "Test Item",
    favs: str = "favs-token",
) -> str:
    og_type = "video.movie" if kind == "movie" else "video.tv_series"
    translators = translators if translators is not None else [(10, "Original"), (20, "Dub")]
    items = "".join(
        f'<li class="b-translator__item" title="{t_title}" data-translator_id="{t_id}" '
        f'data-camrip="0" data-ads="{1 if t_id == 20 else 0}" data-director="0">{t_title}</li>'
        for t_id, t_title in translators
    )
    translators_block = f'<ul id="translators-list" class="b-translators__list">{items}</ul>' if translators else ""
    return f"""
    <html><head><meta property="og:type" content="{og_type}"></head>
    <body>
      <div class="b-post__title"><h1>{title}</h1></div>
      <div class="b-post__origtitle">Original {title}</div>
      <div class="b-sidecover"><a><img src="https://img.test/poster.jpg"></a></div>
      <table class="b-post__info"><tr><td><a href="https://rezka.test/year/2021/">2021</a></td></tr></table>
      <div class="b-post__description_text">About {title}.</div>
      {translators_block}
      <input type="hidden" id="ctrl_favs" value="{favs}">
    </body></html>
    """


class FakeUpstream:
    """Minimal provider: pages by path, AJAX by action, HEAD sizes and thumbnails."""

    def __init__(self):
        self.pages: dict[str, str] = {}
        self.movies: dict[int, dict] = {}
        self.streams: dict[tuple[int, int, int], dict] = {}
        self.trees: dict[int, dict] = {}
        self.sizes: dict[str, int | str | None] = {}
        self.thumbnails: dict[str, str] = {}
        self.failures: Counter = Counter()
        self.forms: list[dict[str, str]] = []
        self.calls: Counter = Counter()
        self.gate: asyncio.Event | None = None

    def fail_next(self, key: str, times: int = 1) -> None:
        self.failures[key] += times

    def _maybe_fail(self, key: str) -> httpx.Response | None:
        if self.failures[key] > 0:
            self.failures[key] -= 1
            return httpx.Response(500, text="boom")
        return None

    async def handler(self, request: httpx.Request) -> httpx.Response:
        if self.gate is not None:
            await self.gate.wait()

        path = request.url.path
        if request.method == "HEAD":
            url = str(request.url)
            self.calls[("HEAD", url)] += 1
            failed = self._maybe_fail(url)
            if failed is not None:
                return failed
            size = self.sizes.get(url)
            headers = {"content-length": str(size)} if size is not None else {}
            return httpx.Response(200, headers=headers)

        if request.method == "POST" and path == "/ajax/get_cdn_series/":
            form = {k: v[0] for k, v in parse_qs(request.content.decode()).items()}
            self.forms.append(form)
            action = form["action"]
            self.calls[action] += 1
            failed = self._maybe_fail(action)
            if failed is not None:
                return failed
            translator_id = int(form["translator_id"])
            if action == "get_movie":
                payload = self.movies.get(translator_id, {"success": False})
            elif action == "get_episodes":
                payload = self.trees.get(translator_id, {"success": False})
            else:
                key = (translator_id, int(form["season"]), int(form["episode"]))
                payload = self.streams.get(key, {"success": False, "message": "Episode removed"})
            return httpx.Response(200, json=payload)

        self.calls[("GET", path)] += 1
        failed = self._maybe_fail(path)
        if failed is not None:
            return failed
        if path in self.thumbnails:
            return httpx.Response(200, text=self.thumbnails[path])
        if path in self.pages:
            return httpx.Response(200, text=self.pages[path])
        return httpx.Response(404, text="not found")

    def ajax_calls(self, action: str) -> int:
        return self.calls[action]


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


def make_provider(upstream: FakeUpstream, **overrides) -> RezkaProvider:
    config = Config(provider_url=BASE_URL, **overrides)
    client = httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(upstream.handler))
    return RezkaProvider(config=config, client=client)


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Keep tests away from the user's real config file and env."""
    from rezka import config as config_module

    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("APPDATA", str(tmp_path / "config"))
    monkeypatch.delenv("REZKA_PROVIDER_URL", raising=False)
    monkeypatch.delenv("REZKA_PROXY_URL", raising=False)
    config_module.reset_config()
    yield
    config_module.reset_config()
