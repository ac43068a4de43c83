"""
HTTP side: cloudscraper session for media downloads and image proxying
"""
import os
import re
import ssl
import random
import logging

import cloudscraper
from requests.adapters import HTTPAdapter
from tqdm import tqdm
from urllib3.util.retry import Retry

from .config import USER_AGENTS
from .errors import DownloadError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 8192


class TLSAdapter(HTTPAdapter):
    """Custom SSL adapter to handle modern TLS requirements"""
    def init_poolmanager(self, *args, **kwargs):
        context = ssl.create_default_context()
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
        context.set_ciphers('HIGH:!DH:!aNULL')
        kwargs['ssl_context'] = context
        return super().init_poolmanager(*args, **kwargs)


def create_session(base_url, user_agents=USER_AGENTS, relaxed_tls=True):
    """Configure cloudscraper session with retries and connection pooling.

    relaxed_tls mounts TLSAdapter, which skips certificate checks for the
    media CDNs; pass False for anything that fetches caller-supplied URLs.
    """
    retry_strategy = Retry(
        total=3,
        backoff_factor=1.5,
        status_forcelist=[429, 500, 502, 503, 504],
        allowed_methods=["GET"]
    )
    adapter_cls = TLSAdapter if relaxed_tls else HTTPAdapter
    adapter = adapter_cls(max_retries=retry_strategy, pool_connections=10, pool_maxsize=20)

    sess = cloudscraper.create_scraper(
        browser={'browser': 'chrome', 'platform': 'windows', 'desktop': True},
        delay=5,
    )
    sess.headers.update({
        'User-Agent': random.choice(user_agents or USER_AGENTS),
        'Accept-Language': 'en-US,en;q=0.9',
        'Referer': base_url,
    })
    sess.mount('https://', adapter)
    sess.mount('http://', adapter)
    return sess


def sanitize_name(name):
    return re.sub(r'[\\/*?:"<>|]', '', name).strip()


def episode_filename(title, number):
    # Zero-pad whole episodes for proper sorting; keep 13.5 style specials as-is
    label = f"{number:02d}" if isinstance(number, int) else str(number)
    return f"{sanitize_name(title)} - Episode {label}.mp4"


class MediaDownloader:
    """Streams resolved media links to disk with a progress bar"""

    def __init__(self, settings, sess=None, image_sess=None):
        self.settings = settings
        self.sess = sess or create_session(settings.base_url, settings.user_agents)
        self.image_sess = image_sess or create_session(settings.base_url, settings.user_agents, relaxed_tls=False)

    def download(self, url, path, progress=True):
        """Download url to path through a .part file; returns path"""
        logger.info(f"Starting download: {os.path.basename(path)}")
        headers = {
            'Referer': self.settings.download_referer,
            'Accept': 'video/webm,video/mp4,video/*,*/*',
        }
        temp_path = path + '.part'
        os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)

        try:
            with self.sess.get(url, headers=headers, stream=True, timeout=(15, 300)) as r:
                if r.status_code != 200:
                    raise DownloadError(f"Server returned non-200 status: {r.status_code}")
                total = int(r.headers.get('content-length', 0))

                with open(temp_path, 'wb') as f, tqdm(
                    desc=os.path.basename(path),
                    total=total,
                    unit='iB',
                    unit_scale=True,
                    unit_divisor=1024,
                    disable=not progress,
                ) as bar:
                    for chunk in r.iter_content(chunk_size=CHUNK_SIZE):
                        if chunk:
                            f.write(chunk)
                            bar.update(len(chunk))
        except DownloadError:
            self._discard(temp_path)
            raise
        except Exception as e:
            self._discard(temp_path)
            raise DownloadError(f"Download of {url} failed: {e}") from e

        os.replace(temp_path, path)
        logger.info(f"Download complete: {path}")
        return path

    def fetch_image(self, url):
        """Fetch an image with the site as referer; returns (content, content_type)"""
        try:
            resp = self.image_sess.get(url, headers={'Referer': f"{self.settings.base_url}/"}, timeout=(10, 30))
        except Exception as e:
            raise DownloadError(f"Failed to fetch image {url}: {e}") from e
        if resp.status_code != 200:
            raise DownloadError(f"Image request returned {resp.status_code}")
        return resp.content, resp.headers.get('Content-Type', 'application/octet-stream')

    @staticmethod
    def _discard(path):
        if os.path.exists(path):
            try:
                os.remove(path)
            except OSError as e:
                logger.warning(f"Failed to remove partial file {path}: {str(e)}")
