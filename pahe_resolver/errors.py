"""Exception hierarchy for the resolver pipeline.

Each error carries a ``category`` so callers can tell apart failures that need
a retry later ("network"), a selector update ("structure"), a broader quality
preference ("quality"), or more capacity ("pool").
"""


class PaheError(Exception):
    """Base class for every error raised by pahe_resolver"""
    category = "internal"


# Pool

class PoolError(PaheError):
    category = "pool"


class PoolNotReady(PoolError):
    """The pool is not in the READY state"""

    def __init__(self, state):
        super().__init__(f"Session pool is not ready (state: {state})")
        self.state = state


class PoolExhausted(PoolError):
    """acquire() gave up waiting for an idle session"""


# Browser primitives

class BrowserError(PaheError):
    category = "network"


class BrowserTimeout(BrowserError):
    """An element never became visible or clickable in time"""


# Download-option discovery

class DiscoveryError(PaheError):
    pass


class DiscoveryTimeout(DiscoveryError):
    category = "structure"


class DiscoveryNavigationError(DiscoveryError):
    category = "network"


# Link resolution

class ResolutionError(PaheError):
    """Terminal failure of one resolution attempt; ``state`` is where it stopped"""

    def __init__(self, message, state=None):
        super().__init__(message)
        self.state = state


class EmbedLinkNotFound(ResolutionError):
    category = "structure"


class ResolutionTimeout(ResolutionError):
    category = "network"


class ResolutionNavigationError(ResolutionError):
    category = "network"


# Listing / search

class ListingError(PaheError):
    pass


class ListingFetchError(ListingError):
    category = "network"


class ListingParseError(ListingError):
    category = "structure"


class SearchError(PaheError):
    category = "structure"


# Quality selection

class NoSuitableQuality(PaheError):
    category = "quality"

    def __init__(self, labels=()):
        self.labels = list(labels)
        super().__init__(f"No suitable quality among {self.labels}")


# File download

class DownloadError(PaheError):
    category = "network"
