import json
import sys
from pathlib import Path

import pytest


# Ensure tests can import project packages regardless of how pytest is invoked.
ROOT = Path(__file__).resolve().parents[1]
ROOT_STR = str(ROOT)
if ROOT_STR not in sys.path:
    sys.path.insert(0, ROOT_STR)

from matching.models import Candidate  # noqa: E402
from orchestrator.decision import Prompter  # noqa: E402
from sources.base import DataSource, SearchOutcome  # noqa: E402


SEARCH_HTML = """
<html><body>
<div data-testid="section-songs" aria-label="Songs">
  <ul class="shelf-grid__list">
    <li class="shelf-grid__list-item">
      <div class="product-lockup">
        <picture>
          <source srcset="https://is1.example/img/hd/100x100bb.webp 100w, https://is1.example/img/hd/200x200bb.webp 200w">
          <img data-src="https://is1.example/img/hd/100x100bb.jpg" src="data:image/gif;base64,R0lGOD">
        </picture>
        <div class="product-lockup__title"><a href="/us/song/hound-dog/101">Hound Dog</a></div>
        <div class="product-lockup__subtitle">Elvis Presley &bull; Elvis&#39; Golden Records</div>
      </div>
    </li>
    <li class="shelf-grid__list-item">
      <div class="product-lockup">
        <picture><img src="https://is1.example/img/bm/100x100bb.jpg"></picture>
        <div class="product-lockup__title"><a href="/us/song/hound-dog/202">Hound Dog</a></div>
        <div class="product-lockup__subtitle">Big Mama Thornton - Hound Dog: The Peacock Recordings</div>
      </div>
    </li>
    <li class="shelf-grid__list-item">
      <div class="product-lockup">
        <div class="product-lockup__title"><a href="/us/song/jailhouse-rock/303" title="Jailhouse Rock by Elvis Presley">x</a></div>
      </div>
    </li>
  </ul>
</div>
<div data-testid="section-albums" aria-label="Albums">
  <ul class="shelf-grid__list">
    <li class="shelf-grid__list-item">
      <div class="product-lockup">
        <picture><img data-src="https://is1.example/img/gr/{w}x{h}bb.jpg"></picture>
        <div class="product-lockup__title"><a href="/us/album/golden-records/404">Elvis' Golden Records</a></div>
        <div class="product-lockup__subtitle">Elvis Presley</div>
      </div>
    </li>
  </ul>
</div>
</body></html>
"""

ALBUM_PAGE_HTML = """
<html><head>
<meta property="og:title" content="Elvis' Golden Records by Elvis Presley on Apple Music">
<meta property="og:type" content="music.album">
<meta property="og:image" content="https://is1.example/img/gr/1200x1200bb.jpg">
<link rel="canonical" href="https://music.apple.com/us/album/golden-records/404">
<script type="application/ld+json">
{"@type": "MusicAlbum", "name": "Elvis' Golden Records", "genre": ["Rock", "Music", "Rock &amp; Roll", "rock"]}
</script>
</head><body>
<h1>Elvis' Golden Records</h1>
<div class="songs-list">
  <div class="songs-list-row"><div class="songs-list-row__song-name">Hound Dog</div></div>
  <div class="songs-list-row"><div class="songs-list-row__song-name">Love Me Tender</div></div>
</div>
</body></html>
"""


class FakeSource(DataSource):
    """In-memory storefront: term -> candidates, link -> genres"""

    def __init__(self, results=None, genres=None, errors=None, pages=None):
        super().__init__(throttle=0)
        self.results = results or {}
        self.genre_map = genres or {}
        self.errors = errors or {}
        self.pages = pages or {}
        self.searches = []
        self.genre_lookups = []
        self.downloads = []

    @property
    def name(self):
        return "Fake"

    @property
    def locale(self):
        return "us-en-US"

    def search(self, query, max_candidates=0):
        self.searches.append(query.term)
        if query.term in self.errors:
            return SearchOutcome.error(self.errors[query.term])
        candidates = list(self.results.get(query.term, []))
        if max_candidates > 0:
            candidates = candidates[:max_candidates]
        return SearchOutcome.hit(candidates)

    def genres(self, candidate):
        self.genre_lookups.append(candidate.link)
        return list(self.genre_map.get(candidate.link, []))

    def item(self, link, preferred_size=0, match_track_hint=None):
        return self.pages.get(link)

    def artwork_url(self, candidate, size=1000):
        return candidate.image_url or None

    def download(self, url):
        self.downloads.append(url)
        return b"\xff\xd8\xff\xe0fake-jpeg"


class ScriptedPrompter(Prompter):
    """Answers prompts from a list; None once the list is exhausted"""

    def __init__(self, answers=None, available=True):
        self.answers = list(answers or [])
        self.is_available = available
        self.lines = []
        self.prompts = 0

    def available(self):
        return self.is_available

    def show(self, line):
        self.lines.append(line)

    def ask(self, prompt):
        self.prompts += 1
        if not self.answers:
            return None
        return self.answers.pop(0)


class FrozenClock:
    def __init__(self, now=1_700_000_000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, minutes):
        self.now += minutes * 60


class JsonAudio(dict):
    """Stand-in for a mutagen easy file: tags stored as JSON in the file body"""

    def __init__(self, path):
        self.path = path
        text = Path(path).read_text(encoding="utf-8")
        super().__init__(json.loads(text) if text.strip() else {})
        self.tags = self

    def add_tags(self):
        pass

    def save(self):
        Path(self.path).write_text(json.dumps(dict(self)), encoding="utf-8")


def make_candidate(index, title, artist=None, album=None, link=None, image_url=""):
    return Candidate(index=index, title=title, artist=artist, album=album,
                     link=link, image_url=image_url)


@pytest.fixture
def json_tags(monkeypatch):
    """Route mutagen.File to JsonAudio and return a track factory"""
    import mutagen

    def fake_file(path, easy=False):
        return JsonAudio(str(path))

    monkeypatch.setattr(mutagen, "File", fake_file)

    def make_track(directory, name, **tags):
        directory = Path(directory)
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / name
        data = {key: value if isinstance(value, list) else [value] for key, value in tags.items()}
        path.write_text(json.dumps(data), encoding="utf-8")
        return path

    return make_track


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def fake_source():
    return FakeSource()


@pytest.fixture
def prompter():
    return ScriptedPrompter()
