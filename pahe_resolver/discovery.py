"""
Download-option discovery on an episode's player page
"""
import time
import logging

from bs4 import BeautifulSoup

from .errors import BrowserError, BrowserTimeout, DiscoveryNavigationError, DiscoveryTimeout
from .models import DownloadOptions

logger = logging.getLogger(__name__)

MENU_TOGGLE = "#downloadMenu"
MENU = "#pickDownload"
MENU_OPTION = "#pickDownload a"


def player_url(base_url, anime_session, episode_session):
    return f"{base_url}/play/{anime_session}/{episode_session}"


def parse_download_menu(html):
    """Pair each menu link's visible text with its href, in page order"""
    soup = BeautifulSoup(html or "", 'html.parser')
    options = DownloadOptions()
    for link in soup.select("a"):
        label = " ".join(link.get_text(" ", strip=True).split())
        href = link.get('href')
        if label and href:
            options.add(label, href)
    return options


def discover_options(session, url, timeout=20):
    """Open the player page, reveal the quality menu and read its options.

    All waits share one deadline. An empty result means the menu opened and
    rendered with nothing in it.
    """
    logger.info(f"Extracting download options from: {url}")

    try:
        session.navigate(url)
    except BrowserError as e:
        raise DiscoveryNavigationError(f"Failed to load player page {url}: {e}") from e

    deadline = time.monotonic() + timeout

    def remaining():
        return max(deadline - time.monotonic(), 0)

    try:
        session.click(MENU_TOGGLE, timeout=remaining())
    except BrowserTimeout as e:
        raise DiscoveryTimeout(f"Download menu toggle never became clickable on {url}") from e
    except BrowserError as e:
        raise DiscoveryNavigationError(f"Player page {url} failed while opening the menu: {e}") from e

    try:
        session.wait_visible(MENU_OPTION, timeout=remaining())
    except BrowserTimeout as e:
        return _empty_menu_or_timeout(session, url, e)
    except BrowserError as e:
        raise DiscoveryNavigationError(f"Player page {url} failed while opening the menu: {e}") from e

    try:
        html = session.outer_html(MENU)
    except BrowserError as e:
        raise DiscoveryNavigationError(f"Failed to read download menu on {url}: {e}") from e

    options = parse_download_menu(html)
    logger.info(f"Found download options: {options.labels()}")
    return options


def _empty_menu_or_timeout(session, url, cause):
    # Only an opened menu with zero links counts as "no options"
    try:
        session.wait_visible(MENU, timeout=0)
        html = session.outer_html(MENU)
    except BrowserError:
        raise DiscoveryTimeout(f"Download menu never appeared on {url}") from cause
    options = parse_download_menu(html)
    if options:
        raise DiscoveryTimeout(f"Download menu on {url} never became visible") from cause
    logger.warning(f"Download menu on {url} has no options")
    return options
