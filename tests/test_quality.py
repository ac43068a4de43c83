import unittest

from pahe_resolver.errors import NoSuitableQuality
from pahe_resolver.models import DownloadOptions
from pahe_resolver.quality import (
    QualityRule, best_available, match_quality, parse_quality, select_quality,
)


class ParseQualityTestCase(unittest.TestCase):
    def test_resolution_and_dub_marker(self) -> None:
        self.assertEqual(parse_quality("AnimeTitle 1080p eng"), ("1080p", "eng"))

    def test_missing_marker_means_japanese(self) -> None:
        self.assertEqual(parse_quality("720p"), ("720p", "jpn"))

    def test_marker_is_case_insensitive(self) -> None:
        self.assertEqual(parse_quality("SubsPlease · 360p (52MB) ENG"), ("360p", "eng"))

    def test_unknown_resolution_is_unset(self) -> None:
        self.assertEqual(parse_quality("480p"), ("", "jpn"))


class MatchQualityTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.options = {"1080p eng": "a", "1080p": "b", "720p eng": "c"}

    def test_match_english(self) -> None:
        self.assertEqual(match_quality(self.options, "1080p", "eng"), ("1080p eng", "a"))

    def test_match_japanese(self) -> None:
        self.assertEqual(match_quality(self.options, "1080p", "jpn"), ("1080p", "b"))

    def test_no_match_falls_back_to_best_available(self) -> None:
        options = {"720p": "x"}
        self.assertIsNone(match_quality(options, "1080p", "eng"))
        self.assertEqual(select_quality(options, "1080p", "eng"), ("720p", "x"))

    def test_fallback_order_is_strict(self) -> None:
        options = DownloadOptions([("360p", "u1"), ("1080p", "u2")])
        self.assertEqual(best_available(options), ("1080p", "u2"))

    def test_ties_follow_page_order(self) -> None:
        options = DownloadOptions([
            ("SubsPlease · 1080p (265MB)", "first"),
            ("Other · 1080p (300MB)", "second"),
        ])
        self.assertEqual(match_quality(options, "1080p", "jpn")[1], "first")

    def test_nothing_suitable_raises(self) -> None:
        with self.assertRaises(NoSuitableQuality) as ctx:
            select_quality({"480p": "x"}, "1080p", "jpn")
        self.assertEqual(ctx.exception.labels, ["480p"])
        self.assertEqual(ctx.exception.category, "quality")

    def test_empty_options_raise(self) -> None:
        with self.assertRaises(NoSuitableQuality):
            select_quality(DownloadOptions(), "720p", "eng")

    def test_custom_rule(self) -> None:
        rule = QualityRule(resolutions=("2160p", "1080p"), dub_marker="dub", default_audio="sub")
        self.assertEqual(rule.parse("Group 2160p DUB"), ("2160p", "dub"))
        options = {"Group 1080p": "a", "Group 2160p dub": "b"}
        self.assertEqual(select_quality(options, "2160p", "sub", rule), ("Group 2160p dub", "b"))


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
