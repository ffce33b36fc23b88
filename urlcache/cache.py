"""
Fetch orchestration: conditional GET against the catalog, object download,
catalog update.

A UrlCache owns its CatalogStore. Nothing here is thread safe; callers that
share one instance across threads must serialize fetch() themselves.
"""

import enum
import os
import time
from email.utils import parsedate_to_datetime
from datetime import timezone
from typing import Callable, Optional

import structlog

from .body import DEFAULT_CHUNK_SIZE, read_body, write_object
from .catalog import DEFAULT_CATALOG_PATH, CatalogStore
from .config import Config
from .errors import (
    MalformedUrlError,
    NotCachedError,
    UnexpectedStatusError,
    ValidatorParseError,
)
from .headers import DEFAULT_MAX_HEADER_BYTES, build_request, read_header
from .transport import Connection, open_connection
from .urls import decompose_url, object_name

logger = structlog.get_logger(__name__)

Connector = Callable[..., Connection]


class FetchState(enum.Enum):
    START = "start"
    CONNECTION_OPEN = "connection_open"
    HEADER_RECEIVED = "header_received"
    BODY_FETCHED = "body_fetched"
    NOT_MODIFIED = "not_modified"
    CATALOG_UPDATED = "catalog_updated"
    DONE = "done"


class FetchResult:
    def __init__(
        self,
        url: str,
        status_code: int = 0,
        object_path: str = None,
        size: int = 0,
        validator: str = None,
        conditional: bool = False,
    ):
        """Outcome of a single fetch()."""
        self.url = url
        self.status_code = status_code
        self.object_path = object_path
        self.size = size
        self.validator = validator
        self.conditional = conditional
        self.state = FetchState.START
        self.fetch_time = 0.0

    @property
    def downloaded(self) -> bool:
        """True when a fresh body was written to local storage."""
        return self.status_code == 200

    @property
    def not_modified(self) -> bool:
        return self.status_code == 304

    def __repr__(self):
        return f"FetchResult({self.url!r}, status={self.status_code}, state={self.state.value})"


class UrlCache:
    def __init__(
        self,
        catalog: CatalogStore,
        object_dir: str = '.',
        connect_timeout: Optional[float] = None,
        read_timeout: Optional[float] = None,
        max_header_bytes: int = DEFAULT_MAX_HEADER_BYTES,
        read_chunk_size: int = DEFAULT_CHUNK_SIZE,
        connector: Connector = open_connection,
    ):
        """Initialize the cache around an already loaded catalog."""
        self.catalog = catalog
        self.object_dir = object_dir
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout
        self.max_header_bytes = max_header_bytes
        self.read_chunk_size = read_chunk_size
        self._connect = connector

    def fetch(self, url: str) -> FetchResult:
        """Download ``url`` unless the catalog copy is still current."""
        host, port, path = decompose_url(url)
        name = object_name(path)
        if not name:
            raise MalformedUrlError(url, "path has no final segment to store the object under")

        result = FetchResult(url)
        log = logger.bind(url=url, host=host, port=port)
        start_time = time.time()

        with self._connect(
            host, port,
            connect_timeout=self.connect_timeout,
            read_timeout=self.read_timeout,
        ) as conn:
            self._advance(result, FetchState.CONNECTION_OPEN)

            cached_validator = self.catalog.get(url)
            result.conditional = cached_validator is not None
            log.info("fetch_started", conditional=result.conditional)
            conn.send(build_request(path, host, port, cached_validator))

            header = read_header(conn.reader, self.max_header_bytes)
            result.status_code = header.status_code
            self._advance(result, FetchState.HEADER_RECEIVED)
            log.debug("header_received", status_line=header.status_line)

            if result.status_code == 304:
                self._advance(result, FetchState.NOT_MODIFIED)
                result.validator = cached_validator
                log.info("cache_not_modified", validator=cached_validator)
                self._advance(result, FetchState.DONE)
                result.fetch_time = time.time() - start_time
                return result

            if result.status_code != 200:
                log.warning("unexpected_status", status_line=header.status_line)
                raise UnexpectedStatusError(result.status_code, header.status_line)

            length = header.content_length
            validator = header.last_modified
            body = read_body(conn.reader, length, self.read_chunk_size)
            self._advance(result, FetchState.BODY_FETCHED)

        object_path = os.path.join(self.object_dir, name)
        write_object(object_path, body)
        result.object_path = object_path
        result.size = len(body)

        self.catalog.put(url, validator)
        self.catalog.save()
        result.validator = validator
        self._advance(result, FetchState.CATALOG_UPDATED)

        self._advance(result, FetchState.DONE)
        result.fetch_time = time.time() - start_time
        log.info("object_cached", path=object_path, size=result.size, validator=validator)
        return result

    def last_modified(self, url: str) -> int:
        """Stored Last-Modified time for ``url`` in epoch milliseconds."""
        validator = self.catalog.get(url)
        if validator is None:
            raise NotCachedError(url)
        return parse_validator(url, validator)

    def _advance(self, result: FetchResult, state: FetchState):
        logger.debug("fetch_state", url=result.url, previous=result.state.value, state=state.value)
        result.state = state

    def __contains__(self, url) -> bool:
        return url in self.catalog

    def __len__(self) -> int:
        return len(self.catalog)


def parse_validator(url: str, validator: str) -> int:
    """RFC 1123 date string to epoch milliseconds."""
    try:
        moment = parsedate_to_datetime(validator)
    except (TypeError, ValueError, IndexError, OverflowError) as e:
        raise ValidatorParseError(url, validator) from e
    if moment is None:
        raise ValidatorParseError(url, validator)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return int(round(moment.timestamp() * 1000))


def open_cache(config: Config = None, connector: Connector = open_connection) -> UrlCache:
    """Load the catalog named by ``config`` and return a ready UrlCache.

    Raises CacheInitError when the catalog cannot be created, read or parsed.
    """
    if config is None:
        config = Config()
    cache_config = config.cache
    network_config = config.network

    catalog_path = cache_config.get('catalog_path')
    object_dir = cache_config.get('object_dir')

    # YAML and env overrides may hand back numbers for purely numeric names
    catalog = CatalogStore(DEFAULT_CATALOG_PATH if catalog_path is None else str(catalog_path))
    catalog.load()

    return UrlCache(
        catalog,
        object_dir='.' if object_dir is None else str(object_dir),
        connect_timeout=network_config.get('connect_timeout'),
        read_timeout=network_config.get('read_timeout'),
        max_header_bytes=network_config.get('max_header_bytes') or DEFAULT_MAX_HEADER_BYTES,
        read_chunk_size=network_config.get('read_chunk_size') or DEFAULT_CHUNK_SIZE,
        connector=connector,
    )
