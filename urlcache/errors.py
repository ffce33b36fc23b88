"""
Exception taxonomy for the url cache.

Every failure a caller can see derives from UrlCacheError, so the whole
family can be caught at once while individual kinds stay distinguishable.
"""


class UrlCacheError(Exception):
    """Base class for all url cache failures."""


class CacheInitError(UrlCacheError):
    """The catalog file could not be created, read or parsed."""


class CachePersistError(UrlCacheError):
    """The catalog could not be written back to disk."""


class CacheIOError(UrlCacheError):
    """Transport or filesystem failure during a fetch."""


class MalformedUrlError(UrlCacheError):
    def __init__(self, url: str, reason: str = "no path separator"):
        self.url = url
        self.reason = reason
        super().__init__(f"Malformed URL {url!r}: {reason}")


class MalformedResponseError(UrlCacheError):
    """Header terminator never seen, or a required field is missing."""


class UnexpectedStatusError(UrlCacheError):
    def __init__(self, status_code: int, status_line: str):
        self.status_code = status_code
        self.status_line = status_line
        super().__init__(f"Unexpected response status: {status_line!r}")


class NotCachedError(UrlCacheError):
    def __init__(self, url: str):
        self.url = url
        super().__init__(f"URL not in catalog: {url}")


class ValidatorParseError(UrlCacheError):
    def __init__(self, url: str, validator: str):
        self.url = url
        self.validator = validator
        super().__init__(f"Cannot parse Last-Modified {validator!r} for {url}")
