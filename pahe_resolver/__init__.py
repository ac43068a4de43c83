"""
AnimePahe link resolver - pooled headless browsers that turn episode pages into direct media URLs
"""
from .browser import BrowserSession, RequestSubscription
from .config import Settings
from .models import CatalogEntry, DownloadOptions, EpisodeEntry, ResolvedLink
from .pool import PoolState, SessionPool
from .quality import best_available, match_quality, parse_quality, select_quality
from .resolver import LinkResolver, ResolutionAttempt, ResolutionState
from .service import PaheService, build_pool

__version__ = "0.3.0"
