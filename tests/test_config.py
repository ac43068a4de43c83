import os
import unittest
from unittest.mock import patch

from pahe_resolver.config import BROWSER_CANDIDATES, Settings, find_browser_executable


class SettingsTestCase(unittest.TestCase):
    def test_defaults(self) -> None:
        settings = Settings.from_env({})
        self.assertEqual(settings.base_url, "https://animepahe.ru")
        self.assertEqual(settings.settle_delay, 6.0)
        self.assertEqual(settings.resolution_timeout, 15.0)
        self.assertEqual(settings.port, 8080)
        self.assertIsNone(settings.browser_path)

    def test_environment_overrides(self) -> None:
        settings = Settings.from_env({
            "PAHE_BASE_URL": "https://animepahe.si/",
            "PAHE_POOL_SIZE": "4",
            "PAHE_HEADLESS": "false",
            "PAHE_RESOLUTION_TIMEOUT": "20",
            "PORT": "9000",
        })
        self.assertEqual(settings.base_url, "https://animepahe.si")
        self.assertEqual(settings.pool_size, 4)
        self.assertFalse(settings.headless)
        self.assertEqual(settings.resolution_timeout, 20.0)
        self.assertEqual(settings.port, 9000)

    def test_pool_size_must_be_positive(self) -> None:
        with self.assertRaises(ValueError):
            Settings.from_env({"PAHE_POOL_SIZE": "0"})


class FindBrowserTestCase(unittest.TestCase):
    def test_explicit_path_wins(self) -> None:
        self.assertEqual(find_browser_executable("/opt/brave/brave"), "/opt/brave/brave")

    @patch.dict(os.environ, {"PAHE_BROWSER_PATH": "/custom/chrome"})
    def test_environment_path(self) -> None:
        self.assertEqual(find_browser_executable(), "/custom/chrome")

    @patch.dict(os.environ, {}, clear=True)
    def test_first_existing_candidate(self) -> None:
        present = {"/usr/bin/chromium"}
        path = find_browser_executable(system="Linux", exists=present.__contains__)
        self.assertEqual(path, "/usr/bin/chromium")

    @patch.dict(os.environ, {}, clear=True)
    def test_nothing_found_defers_to_driver(self) -> None:
        self.assertIsNone(find_browser_executable(system="Linux", exists=lambda _: False))
        self.assertIn("/usr/bin/brave-browser", BROWSER_CANDIDATES["Linux"])

    @patch.dict(os.environ, {}, clear=True)
    def test_settings_pin_browser_once(self) -> None:
        with patch("pahe_resolver.config.find_browser_executable", return_value="/usr/bin/brave") as finder:
            settings = Settings.from_env({}).with_browser()
        finder.assert_called_once_with(None)
        self.assertEqual(settings.browser_path, "/usr/bin/brave")


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
