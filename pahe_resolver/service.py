"""
The four operations exposed to callers, each run on one pooled browser session
"""
import logging

from .browser import BrowserSession
from .catalog import list_episodes, search, session_fetcher
from .discovery import discover_options, player_url
from .pool import SessionPool
from .quality import select_quality
from .resolver import LinkResolver

logger = logging.getLogger(__name__)


def build_pool(settings):
    """Session pool of undetected Chrome instances warmed on the landing page"""
    def factory(index):
        return BrowserSession(settings, name=f"worker_{index + 1}")
    return SessionPool(factory, settings.pool_size, warm_url=f"{settings.base_url}/")


class PaheService:
    def __init__(self, pool, settings, resolver=None):
        self.pool = pool
        self.settings = settings
        self.resolver = resolver or LinkResolver.from_settings(settings)

    def search(self, query):
        with self.pool.session() as session:
            return search(session, query, self.settings.base_url, timeout=self.settings.element_timeout)

    def list_episodes(self, anime_session):
        with self.pool.session() as session:
            return list_episodes(session_fetcher(session), anime_session, self.settings.base_url)

    def discover_options(self, anime_session, episode_session):
        url = player_url(self.settings.base_url, anime_session, episode_session)
        with self.pool.session() as session:
            return discover_options(session, url, timeout=self.settings.discovery_timeout)

    def resolve_link(self, intermediate_url):
        with self.pool.session() as session:
            return self.resolver.resolve(session, intermediate_url)

    def resolve_episode(self, anime_session, episode_session, resolution, audio):
        """Discover, pick a quality and resolve; returns (label, ResolvedLink)"""
        options = self.discover_options(anime_session, episode_session)
        label, url = select_quality(options, resolution, audio)
        return label, self.resolve_link(url)
