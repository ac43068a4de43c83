"""
Quality selection over the labels offered in a player page's download menu.

Labels look like "SubsPlease · 1080p (131MB) eng". The site only marks English
dubs; a label without "eng" is the original Japanese audio.
"""
import logging

from .errors import NoSuitableQuality

logger = logging.getLogger(__name__)

RESOLUTIONS = ("1080p", "720p", "360p")


class QualityRule:
    """Label conventions of one source site"""

    def __init__(self, resolutions=RESOLUTIONS, dub_marker="eng", default_audio="jpn"):
        self.resolutions = tuple(resolutions)
        self.dub_marker = dub_marker
        self.default_audio = default_audio

    def parse(self, label):
        """Return (resolution, audio); resolution is "" when none is present"""
        resolution = next((r for r in self.resolutions if r in label), "")
        audio = self.dub_marker if self.dub_marker in label.lower() else self.default_audio
        return resolution, audio

    def audio_matches(self, label, audio):
        has_marker = self.dub_marker in label.lower()
        if audio == self.dub_marker:
            return has_marker
        return not has_marker


DEFAULT_RULE = QualityRule()


def _pairs(options):
    """(label, url) pairs from DownloadOptions or any mapping"""
    if hasattr(options, "items"):
        return list(options.items())
    return list(options)


def parse_quality(label, rule=DEFAULT_RULE):
    return rule.parse(label)


def match_quality(options, resolution, audio, rule=DEFAULT_RULE):
    """First option whose label has the resolution and the wanted audio track"""
    for label, url in _pairs(options):
        if resolution in label.lower() and rule.audio_matches(label, audio):
            return label, url
    return None


def best_available(options, rule=DEFAULT_RULE):
    """Highest resolution tier present, regardless of audio"""
    pairs = _pairs(options)
    for resolution in rule.resolutions:
        for label, url in pairs:
            if resolution in label:
                return label, url
    return None


def select_quality(options, resolution, audio, rule=DEFAULT_RULE):
    """Preferred match, else the best available tier; raises NoSuitableQuality"""
    picked = match_quality(options, resolution, audio, rule)
    if picked is None:
        logger.info(f"Preferred quality {resolution or 'any'} ({audio}) not found, falling back to best available")
        picked = best_available(options, rule)

    if picked is None:
        raise NoSuitableQuality([label for label, _ in _pairs(options)])

    logger.info(f"Using quality: {picked[0]}")
    return picked
