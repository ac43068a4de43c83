"""
Catalog search and paginated episode listing
"""
import json
import time
import logging
from urllib.parse import quote

from bs4 import BeautifulSoup

from .errors import BrowserError, ListingFetchError, ListingParseError, SearchError
from .models import CatalogEntry, EpisodeEntry

logger = logging.getLogger(__name__)

SEARCH_INPUT = 'input.input-search[name="q"]'
SEARCH_RESULT_TITLE = "div.search-results-wrap a .result-title"
SEARCH_RESULTS = "div.search-results-wrap"


def release_api_url(base_url, anime_session, page):
    return f"{base_url}/api?m=release&id={quote(anime_session)}&sort=episode_asc&page={page}"


def parse_search_results(html):
    """Parse the live-search dropdown into catalog entries"""
    soup = BeautifulSoup(html or "", 'html.parser')
    results = []
    for link in soup.select("a"):
        href = link.get('href', '')
        title = link.select_one("div.result-title")
        if not href or title is None:
            continue

        # e.g. "TV - 12 Episodes"
        status = link.select_one("div.result-status")
        status_parts = status.get_text().split(" - ") if status else []
        anime_type = status_parts[0].strip() if status_parts else ""
        episodes = status_parts[1].strip() if len(status_parts) > 1 else ""

        poster = link.select_one("img")
        season = link.select_one("div.result-season")

        results.append(CatalogEntry(
            title=title.get_text().strip(),
            session=href.rstrip("/").split("/")[-1],
            poster=poster.get('src', '') if poster else "",
            type=anime_type,
            episodes=episodes,
            year=season.get_text().strip() if season else "",
        ))
    return results


def search(session, query, base_url, timeout=20, settle=1.0, sleep=time.sleep):
    """Type query into the site's search box and read the suggestions"""
    logger.info(f"Searching for: {query}")
    try:
        session.navigate(base_url)
        session.type_text(SEARCH_INPUT, query, timeout=timeout)
        session.wait_visible(SEARCH_RESULT_TITLE, timeout=timeout)
        # Suggestions keep streaming in for a moment
        sleep(settle)
        html = session.outer_html(SEARCH_RESULTS)
    except BrowserError as e:
        raise SearchError(f"Failed to perform search for {query!r}: {e}") from e

    results = parse_search_results(html)
    logger.info(f"Found {len(results)} results")
    return results


def _parse_episode(item):
    try:
        value = float(item['episode'])
        number = int(value) if value.is_integer() else value
        return EpisodeEntry(
            episode=number,
            session=str(item['session']),
            duration=item.get('duration') or "",
            snapshot=item.get('snapshot') or "",
            audio=item.get('audio') or "",
            created_at=item.get('created_at') or "",
        )
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise ListingParseError(f"Malformed episode entry {item!r}: {e}") from e


def parse_release_page(text):
    """Decode one page of the release API into (current_page, last_page, episodes)"""
    try:
        data = json.loads(text)
    except (TypeError, ValueError) as e:
        raise ListingParseError(f"Episode listing is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ListingParseError(f"Unexpected episode listing payload: {type(data).__name__}")

    items = data.get('data') or []
    if not isinstance(items, list):
        raise ListingParseError("Episode listing 'data' is not a list")

    try:
        current_page = int(data.get('current_page', 1))
        last_page = int(data.get('last_page', current_page))
    except (TypeError, ValueError) as e:
        raise ListingParseError(f"Bad pagination fields in episode listing: {e}") from e

    return current_page, last_page, [_parse_episode(item) for item in items]


def list_episodes(fetch_text, anime_session, base_url):
    """Walk every page of the release API and return all episodes in order.

    fetch_text(url) returns the response body. Any failing page aborts the
    whole listing.
    """
    logger.info(f"Fetching episode list for session {anime_session}")
    episodes = []
    page = 1

    while True:
        url = release_api_url(base_url, anime_session, page)
        try:
            text = fetch_text(url)
        except ListingFetchError:
            raise
        except Exception as e:
            raise ListingFetchError(f"Failed to fetch episode page {page}: {e}") from e

        current_page, last_page, items = parse_release_page(text)
        episodes.extend(items)
        logger.debug(f"Page {current_page}/{last_page}: {len(items)} episodes")

        # A response stuck on an old current_page must not loop forever
        if max(current_page, page) >= last_page:
            break
        page += 1

    logger.info(f"Found {len(episodes)} episodes")
    return episodes


def session_fetcher(session):
    """fetch_text backed by a browser session, which gets past DDoS-Guard"""
    def fetch_text(url):
        try:
            session.navigate(url)
            return session.body_text()
        except BrowserError as e:
            raise ListingFetchError(str(e)) from e
    return fetch_text
