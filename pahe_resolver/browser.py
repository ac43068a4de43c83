"""
Browser session: one undetected Chrome instance with a throwaway profile
"""
import random
import shutil
import logging
import tempfile
import threading
import concurrent.futures
from contextlib import contextmanager

import undetected_chromedriver as uc
from selenium.common.exceptions import TimeoutException, WebDriverException
from selenium.webdriver.common.by import By
from selenium.webdriver.support.ui import WebDriverWait
from selenium.webdriver.support import expected_conditions as EC

from .errors import BrowserError, BrowserTimeout

logger = logging.getLogger(__name__)

REQUEST_EVENT = "Network.requestWillBeSent"


@contextmanager
def _driver_errors(action):
    """Turn selenium failures into BrowserError / BrowserTimeout"""
    try:
        yield
    except TimeoutException as e:
        raise BrowserTimeout(f"{action} timed out: {e.msg}") from e
    except WebDriverException as e:
        raise BrowserError(f"{action} failed: {e.msg}") from e


class RequestSubscription:
    """One-shot capture of the first outgoing request URL accepted by predicate.

    The first accepted URL completes the subscription and cancels it, later
    matches are dropped. cancel() is idempotent and runs on_cancel once.
    """

    def __init__(self, predicate, on_cancel=None):
        self.predicate = predicate
        self._on_cancel = on_cancel
        self._future = concurrent.futures.Future()
        self._lock = threading.Lock()
        self._cancelled = False

    @property
    def cancelled(self):
        return self._cancelled

    @property
    def captured(self):
        return self._future.done()

    @property
    def url(self):
        return self._future.result() if self._future.done() else None

    def offer(self, url):
        """Feed one observed request URL; returns True if it was captured"""
        if not url or not self.predicate(url):
            return False

        with self._lock:
            if self._cancelled or self._future.done():
                return False
            self._future.set_result(url)

        self.cancel()
        return True

    def wait(self, timeout):
        """Block until a URL is captured; raises concurrent.futures.TimeoutError"""
        return self._future.result(timeout=timeout)

    def cancel(self):
        with self._lock:
            if self._cancelled:
                return
            self._cancelled = True
        if self._on_cancel is not None:
            self._on_cancel(self)


class BrowserSession:
    """Controllable headless browser bound to one temporary profile directory"""

    def __init__(self, settings, driver=None, name=None):
        self.settings = settings
        self.name = name or f"session_{random.randint(1000, 9999)}"
        self.profile_dir = None
        self._subscription = None
        self._lock = threading.Lock()

        if driver is None:
            self.profile_dir = tempfile.mkdtemp(prefix="pahe-profile-", dir=settings.profile_root)
            try:
                driver = self._create_driver()
            except Exception as e:
                shutil.rmtree(self.profile_dir, ignore_errors=True)
                raise BrowserError(f"Failed to start browser for {self.name}: {e}") from e

        self.driver = driver
        logger.info(f"Browser session {self.name} started")

    def _create_driver(self):
        """Create an undetected Chrome instance with CDP events enabled"""
        options = uc.ChromeOptions()

        prefs = {
            "safebrowsing.enabled": False,
            # Limit resource usage
            "profile.default_content_setting_values.images": 2,  # Don't load images
        }
        options.add_experimental_option("prefs", prefs)

        if self.settings.headless:
            options.add_argument("--headless=new")
        options.add_argument("--disable-dev-shm-usage")
        options.add_argument("--disable-blink-features=AutomationControlled")
        options.add_argument("--no-sandbox")
        options.add_argument("--disable-extensions")
        options.add_argument("--disable-gpu")
        options.add_argument("--window-size=1280,720")

        if self.settings.user_agents:
            options.add_argument(f"--user-agent={random.choice(self.settings.user_agents)}")

        driver = uc.Chrome(
            options=options,
            user_data_dir=self.profile_dir,
            browser_executable_path=self.settings.browser_path,
            enable_cdp_events=True,
            use_subprocess=True,
        )
        driver.set_page_load_timeout(self.settings.page_load_timeout)
        return driver

    def _timeout(self, timeout):
        return self.settings.element_timeout if timeout is None else timeout

    def navigate(self, url):
        logger.debug(f"[{self.name}] navigate {url}")
        with _driver_errors(f"Navigation to {url}"):
            self.driver.get(url)

    def wait_visible(self, selector, timeout=None):
        with _driver_errors(f"Waiting for {selector}"):
            return WebDriverWait(self.driver, self._timeout(timeout)).until(
                EC.visibility_of_element_located((By.CSS_SELECTOR, selector))
            )

    def click(self, selector, timeout=None):
        with _driver_errors(f"Clicking {selector}"):
            element = WebDriverWait(self.driver, self._timeout(timeout)).until(
                EC.element_to_be_clickable((By.CSS_SELECTOR, selector))
            )
            element.click()

    def type_text(self, selector, text, timeout=None):
        element = self.wait_visible(selector, timeout)
        with _driver_errors(f"Typing into {selector}"):
            element.send_keys(text)

    def outer_html(self, selector=None):
        """Rendered markup of selector, or of the whole document"""
        with _driver_errors(f"Reading {selector or 'document'}"):
            if selector is None:
                return self.driver.execute_script("return document.documentElement.outerHTML;")
            return self.driver.find_element(By.CSS_SELECTOR, selector).get_attribute("outerHTML")

    def body_text(self):
        with _driver_errors("Reading page body"):
            return self.driver.find_element(By.TAG_NAME, "body").text

    def evaluate(self, script, *args):
        with _driver_errors("Script evaluation"):
            return self.driver.execute_script(script, *args)

    def subscribe_requests(self, predicate):
        """Start capturing outgoing requests; only one subscription per session"""
        with self._lock:
            previous = self._subscription
        if previous is not None:
            previous.cancel()

        subscription = RequestSubscription(predicate, on_cancel=self._detach)
        with self._lock:
            self._subscription = subscription
        self.driver.add_cdp_listener(REQUEST_EVENT, self._on_request)
        return subscription

    def _on_request(self, message):
        url = message.get("params", {}).get("request", {}).get("url", "")
        subscription = self._subscription
        if subscription is not None and subscription.offer(url):
            logger.debug(f"[{self.name}] captured request {url}")

    def _detach(self, subscription):
        with self._lock:
            if self._subscription is not subscription:
                return
            self._subscription = None
        self.driver.clear_cdp_listeners()

    def close(self):
        """Quit the browser and delete the profile directory"""
        subscription = self._subscription
        if subscription is not None:
            subscription.cancel()

        try:
            self.driver.quit()
        except Exception as e:
            logger.warning(f"Error closing browser {self.name}: {str(e)}")

        if self.profile_dir:
            shutil.rmtree(self.profile_dir, ignore_errors=True)
        logger.info(f"Browser session {self.name} closed")

    def __repr__(self):
        return f"<BrowserSession {self.name}>"
