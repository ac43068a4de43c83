"""
Link resolution: pahe.win intermediate page -> kwik redirect page -> media URL.

The pahe.win page hides the kwik link in obfuscated script, so we let it run
for a while and then scrape the rendered markup. The kwik page only exists to
post a hidden form; the real media URL shows up as the browser's request
after that post, which we catch from the network event stream.
"""
import re
import time
import logging
import concurrent.futures
from enum import Enum

from .errors import BrowserError, EmbedLinkNotFound, ResolutionNavigationError, ResolutionTimeout
from .models import ResolvedLink

logger = logging.getLogger(__name__)

SUBMIT_FORM_SCRIPT = "document.querySelector('form').submit()"


class ResolutionState(Enum):
    EMBED_PAGE = "embed_page"
    AWAIT_SETTLE = "await_settle"
    EXTRACT_REDIRECT_URL = "extract_redirect_url"
    NAVIGATE_REDIRECT = "navigate_redirect"
    AWAIT_NETWORK_EVENT = "await_network_event"
    RESOLVED = "resolved"
    TIMED_OUT = "timed_out"
    FAILED = "failed"


TERMINAL_STATES = (ResolutionState.RESOLVED, ResolutionState.TIMED_OUT, ResolutionState.FAILED)


class ResolutionAttempt:
    """State trail of a single resolution run"""

    def __init__(self, url):
        self.url = url
        self.redirect_url = None
        self.media_url = None
        self.history = []
        self.state = None

    def enter(self, state):
        if self.finished:
            raise RuntimeError(f"Attempt for {self.url} already finished in {self.state.name}")
        self.state = state
        self.history.append(state)
        logger.debug(f"[{self.url}] -> {state.name}")

    @property
    def finished(self):
        return self.state in TERMINAL_STATES


class LinkResolver:
    """Single-attempt resolver; rerun from the start to retry"""

    def __init__(self, settle_delay=6.0, timeout=15.0, media_extension=".mp4",
                 redirect_pattern=r'"([^"]+kwik\.(?:si|cx)[^"]+)"', sleep=time.sleep):
        self.settle_delay = settle_delay
        self.timeout = timeout
        self.media_extension = media_extension
        self.redirect_re = re.compile(redirect_pattern)
        self.sleep = sleep

    @classmethod
    def from_settings(cls, settings):
        return cls(
            settle_delay=settings.settle_delay,
            timeout=settings.resolution_timeout,
            media_extension=settings.media_extension,
            redirect_pattern=settings.redirect_pattern,
        )

    def is_media_request(self, url):
        return self.media_extension in url

    def extract_redirect_url(self, html):
        match = self.redirect_re.search(html or "")
        return match.group(1) if match else None

    def resolve(self, session, url, attempt=None):
        """Drive session from the intermediate URL to the final media URL.

        Pass a fresh ResolutionAttempt to inspect the states visited.
        """
        attempt = attempt or ResolutionAttempt(url)
        logger.info(f"Resolving download link: {url}")

        # Embed page
        attempt.enter(ResolutionState.EMBED_PAGE)
        try:
            session.navigate(url)
        except BrowserError as e:
            attempt.enter(ResolutionState.FAILED)
            raise ResolutionNavigationError(f"Failed to load pahe.win page: {e}", attempt.state) from e

        # Let the page's own scripts finish rewriting the DOM
        attempt.enter(ResolutionState.AWAIT_SETTLE)
        self.sleep(self.settle_delay)

        attempt.enter(ResolutionState.EXTRACT_REDIRECT_URL)
        try:
            html = session.outer_html()
        except BrowserError as e:
            attempt.enter(ResolutionState.FAILED)
            raise ResolutionNavigationError(f"Failed to read pahe.win page: {e}", attempt.state) from e

        redirect_url = self.extract_redirect_url(html)
        if not redirect_url:
            attempt.enter(ResolutionState.FAILED)
            raise EmbedLinkNotFound("Could not find kwik link on pahe.win page", attempt.state)
        attempt.redirect_url = redirect_url
        logger.info(f"Found kwik link: {redirect_url}")

        # Listen before navigating so the media request cannot slip past
        attempt.enter(ResolutionState.NAVIGATE_REDIRECT)
        subscription = session.subscribe_requests(self.is_media_request)
        try:
            try:
                session.navigate(redirect_url)
                session.evaluate(SUBMIT_FORM_SCRIPT)
            except BrowserError as e:
                # The form post can tear the page down after our request already fired
                if not subscription.captured:
                    attempt.enter(ResolutionState.FAILED)
                    raise ResolutionNavigationError(
                        f"Failed to navigate and submit on kwik page: {e}", attempt.state) from e
                logger.debug(f"Ignoring navigation error after capture: {e}")

            attempt.enter(ResolutionState.AWAIT_NETWORK_EVENT)
            try:
                media_url = subscription.wait(self.timeout)
            except concurrent.futures.TimeoutError:
                attempt.enter(ResolutionState.TIMED_OUT)
                raise ResolutionTimeout(
                    f"Timed out after {self.timeout}s waiting for the final {self.media_extension} link",
                    attempt.state) from None
        finally:
            subscription.cancel()

        attempt.media_url = media_url
        attempt.enter(ResolutionState.RESOLVED)
        logger.info(f"Resolved final link: {media_url}")
        return ResolvedLink(url=media_url, source=url)
