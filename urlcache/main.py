"""
Entrypoint: load .env and config, init logging, open the cache, then fetch
URLs or report their cached Last-Modified time.
"""

import argparse
import sys

import structlog
from dotenv import load_dotenv

from .cache import open_cache
from .config import Config
from .errors import UrlCacheError
from .logs import setup_logging

logger = structlog.get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='urlcache', description='Conditional-GET object cache')
    parser.add_argument('--config', help='path to a config.yaml overriding the packaged one')
    sub = parser.add_subparsers(dest='command', required=True)

    fetch = sub.add_parser('fetch', help='download URLs whose cached copy is stale')
    fetch.add_argument('urls', nargs='+', metavar='URL', help='host[:port]/path')

    last_modified = sub.add_parser('last-modified', help='print the cached Last-Modified in epoch millis')
    last_modified.add_argument('url', metavar='URL')
    return parser


def main(argv=None) -> int:
    """Main entry point for the urlcache command."""
    args = build_parser().parse_args(argv)

    load_dotenv()
    config = Config(args.config)
    setup_logging(config.logging)

    try:
        cache = open_cache(config)

        if args.command == 'fetch':
            for url in args.urls:
                cache.fetch(url)
                print(f"{url}\t{cache.last_modified(url)}")
        else:
            print(cache.last_modified(args.url))

    except UrlCacheError as e:
        logger.error("command_failed", command=args.command, error=str(e), error_type=type(e).__name__)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
