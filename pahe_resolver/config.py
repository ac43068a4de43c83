"""
Runtime settings and logging setup, resolved once at startup
"""
import os
import sys
import logging
import platform
import tempfile
from dataclasses import dataclass, field, replace

LOG_FORMAT = '[%(asctime)s] {%(filename)s:%(lineno)d} %(levelname)s - %(message)s'

BASE_URL = "https://animepahe.ru"

# Browser user agents
USER_AGENTS = [
    'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/121.0.0.0 Safari/537.36',
    'Mozilla/5.0 (Macintosh; Intel Mac OS X 14_3) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.3 Safari/605.1.15',
    'Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/121.0.0.0 Safari/537.36',
]

# Where Chromium-family browsers usually live, in order of preference
BROWSER_CANDIDATES = {
    'Windows': [
        r'C:\Program Files\BraveSoftware\Brave-Browser\Application\brave.exe',
        r'C:\Program Files (x86)\BraveSoftware\Brave-Browser\Application\brave.exe',
        r'C:\Program Files\Google\Chrome\Application\chrome.exe',
        r'C:\Program Files (x86)\Google\Chrome\Application\chrome.exe',
    ],
    'Darwin': [
        '/Applications/Brave Browser.app/Contents/MacOS/Brave Browser',
        '/Applications/Google Chrome.app/Contents/MacOS/Google Chrome',
        '/Applications/Chromium.app/Contents/MacOS/Chromium',
    ],
    'Linux': [
        '/usr/bin/brave-browser',
        '/usr/bin/brave',
        '/opt/brave.com/brave/brave-browser',
        '/usr/bin/google-chrome',
        '/usr/bin/chromium',
        '/usr/bin/chromium-browser',
    ],
}


def find_browser_executable(explicit=None, system=None, exists=os.path.isfile):
    """Return the browser binary to drive, or None to let the driver find one"""
    if explicit:
        return explicit

    env_path = os.environ.get("PAHE_BROWSER_PATH")
    if env_path:
        return env_path

    for path in BROWSER_CANDIDATES.get(system or platform.system(), []):
        if exists(path):
            return path
    return None


def _env_bool(value, default):
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    base_url: str = BASE_URL
    pool_size: int = 2
    headless: bool = True
    browser_path: str = None
    profile_root: str = field(default_factory=tempfile.gettempdir)
    user_agents: list = field(default_factory=lambda: list(USER_AGENTS))

    # Timeouts (seconds)
    page_load_timeout: float = 60.0
    element_timeout: float = 20.0
    discovery_timeout: float = 20.0
    settle_delay: float = 6.0
    resolution_timeout: float = 15.0

    media_extension: str = ".mp4"
    redirect_pattern: str = r'"([^"]+kwik\.(?:si|cx)[^"]+)"'
    download_referer: str = "https://kwik.si/"

    # HTTP API
    host: str = "0.0.0.0"
    port: int = 8080
    keepalive_url: str = None
    keepalive_interval: float = 20.0
    keepalive_delay: float = 30.0

    log_file: str = "pahe_resolver.log"

    @classmethod
    def from_env(cls, environ=None):
        """Build settings from PAHE_* variables (and PORT), falling back to defaults"""
        env = os.environ if environ is None else environ
        defaults = cls()
        settings = replace(
            defaults,
            base_url=env.get("PAHE_BASE_URL", defaults.base_url).rstrip("/"),
            pool_size=int(env.get("PAHE_POOL_SIZE", defaults.pool_size)),
            headless=_env_bool(env.get("PAHE_HEADLESS"), defaults.headless),
            browser_path=env.get("PAHE_BROWSER_PATH") or None,
            profile_root=env.get("PAHE_PROFILE_ROOT", defaults.profile_root),
            discovery_timeout=float(env.get("PAHE_DISCOVERY_TIMEOUT", defaults.discovery_timeout)),
            settle_delay=float(env.get("PAHE_SETTLE_DELAY", defaults.settle_delay)),
            resolution_timeout=float(env.get("PAHE_RESOLUTION_TIMEOUT", defaults.resolution_timeout)),
            port=int(env.get("PORT", defaults.port)),
            keepalive_url=env.get("PAHE_KEEPALIVE_URL") or None,
            keepalive_interval=float(env.get("PAHE_KEEPALIVE_INTERVAL", defaults.keepalive_interval)),
            log_file=env.get("PAHE_LOG_FILE", defaults.log_file),
        )
        if settings.pool_size < 1:
            raise ValueError(f"Pool size must be at least 1, got {settings.pool_size}")
        return settings

    def with_browser(self, explicit=None):
        """Pin the browser executable so sessions never look it up mid-flow"""
        return replace(self, browser_path=find_browser_executable(explicit or self.browser_path))


def configure_logging(level=logging.INFO, log_file="pahe_resolver.log"):
    """Log to stderr and, when log_file is set, append to that file"""
    handlers = [logging.StreamHandler(stream=sys.stderr)]
    if log_file:
        handlers.insert(0, logging.FileHandler(log_file, mode='a'))

    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=True)
