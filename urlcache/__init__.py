"""
Single-client HTTP object cache built on conditional GET.
"""

from .cache import FetchResult, FetchState, UrlCache, open_cache
from .catalog import CatalogStore
from .config import Config
from .errors import (
    CacheInitError,
    CacheIOError,
    CachePersistError,
    MalformedResponseError,
    MalformedUrlError,
    NotCachedError,
    UnexpectedStatusError,
    UrlCacheError,
    ValidatorParseError,
)

__all__ = [
    "CacheInitError",
    "CacheIOError",
    "CachePersistError",
    "CatalogStore",
    "Config",
    "FetchResult",
    "FetchState",
    "MalformedResponseError",
    "MalformedUrlError",
    "NotCachedError",
    "UnexpectedStatusError",
    "UrlCache",
    "UrlCacheError",
    "ValidatorParseError",
    "open_cache",
]
