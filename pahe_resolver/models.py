"""
Plain data types passed between the pipeline stages
"""
from dataclasses import asdict, dataclass


@dataclass(frozen=True)
class CatalogEntry:
    """One title returned by search"""
    title: str
    session: str
    poster: str = ""
    type: str = ""
    episodes: str = ""
    year: str = ""

    def to_dict(self):
        return asdict(self)


@dataclass(frozen=True)
class EpisodeEntry:
    """One release row; specials such as 13.5 keep a float episode number"""
    episode: float
    session: str
    duration: str = ""
    snapshot: str = ""
    audio: str = ""
    created_at: str = ""

    def to_dict(self):
        return asdict(self)


class DownloadOptions:
    """Quality label -> intermediate URL pairs, kept in the order the page lists them.

    Labels may repeat; lookup by label returns the first occurrence while
    iteration yields every pair.
    """

    def __init__(self, pairs=()):
        self._pairs = []
        self._lookup = {}
        for label, url in pairs:
            self.add(label, url)

    def add(self, label, url):
        self._pairs.append((label, url))
        self._lookup.setdefault(label, url)

    def items(self):
        return list(self._pairs)

    def labels(self):
        return [label for label, _ in self._pairs]

    def get(self, label, default=None):
        return self._lookup.get(label, default)

    def __getitem__(self, label):
        return self._lookup[label]

    def __contains__(self, label):
        return label in self._lookup

    def __iter__(self):
        return iter(self._pairs)

    def __len__(self):
        return len(self._pairs)

    def __bool__(self):
        return bool(self._pairs)

    def __eq__(self, other):
        if isinstance(other, DownloadOptions):
            return self._pairs == other._pairs
        return NotImplemented

    def to_dict(self):
        """Label -> URL mapping (first occurrence of a label wins), in page order"""
        return dict(self._lookup)

    def __repr__(self):
        return f"DownloadOptions({self._pairs!r})"


@dataclass(frozen=True)
class ResolvedLink:
    """Direct, time-limited media URL recovered from an intermediate URL"""
    url: str
    source: str = ""
