"""
Persisted url -> Last-Modified catalog.

On disk the catalog is a properties-style text file, one ``url=validator``
line per entry. Keys and values are escaped so that any string survives a
save/load cycle:

- ``\\``, ``=``, ``:`` and the whitespace controls get backslash escapes
- spaces are escaped in keys, and at the start of values
- other control and non-ASCII characters become ``\\uXXXX`` (UTF-16 units)
- lines starting with ``#`` or ``!`` are comments

Files written by java.util.Properties load unchanged.
"""

import os
import re
import tempfile
from typing import Dict, Iterator, List, Optional, Tuple

import structlog

from .body import file_mode
from .errors import CacheInitError, CachePersistError

logger = structlog.get_logger(__name__)

DEFAULT_CATALOG_PATH = 'fileCatalog.txt'
CATALOG_COMMENT = '# url cache catalog: url=Last-Modified'

_ESCAPES = {'\\': '\\\\', '=': '\\=', ':': '\\:', '\t': '\\t', '\n': '\\n', '\r': '\\r', '\f': '\\f'}
_UNESCAPES = {'t': '\t', 'n': '\n', 'r': '\r', 'f': '\f'}
_LINE_BREAK = re.compile(r'\r\n|\r|\n')


def escape(text: str, is_key: bool = False) -> str:
    out = []
    for i, ch in enumerate(text):
        if ch in _ESCAPES:
            out.append(_ESCAPES[ch])
        elif ch == ' ' and (is_key or i == 0):
            out.append('\\ ')
        elif i == 0 and ch in '#!':
            out.append('\\' + ch)
        elif ord(ch) < 0x20 or ord(ch) > 0x7e:
            units = ch.encode('utf-16-be', 'surrogatepass')
            for j in range(0, len(units), 2):
                out.append('\\u%04x' % int.from_bytes(units[j:j + 2], 'big'))
        else:
            out.append(ch)
    return ''.join(out)


def _tokenize(line: str, lineno: int) -> List[Tuple[str, bool]]:
    """Turn a logical line into (char, was_escaped) pairs."""
    tokens = []
    i = 0
    while i < len(line):
        ch = line[i]
        if ch != '\\':
            tokens.append((ch, False))
            i += 1
            continue

        if i + 1 >= len(line):
            raise CacheInitError(f"Catalog line {lineno}: dangling escape")
        nxt = line[i + 1]
        if nxt == 'u':
            digits = line[i + 2:i + 6]
            if len(digits) != 4 or not all(c in '0123456789abcdefABCDEF' for c in digits):
                raise CacheInitError(f"Catalog line {lineno}: malformed \\u escape {line[i:i + 6]!r}")
            tokens.append((chr(int(digits, 16)), True))
            i += 6
        else:
            tokens.append((_UNESCAPES.get(nxt, nxt), True))
            i += 2
    return tokens


def _join(tokens: List[Tuple[str, bool]]) -> str:
    # \u escapes may encode surrogate pairs; fold them back into code points
    text = ''.join(ch for ch, _ in tokens)
    return text.encode('utf-16', 'surrogatepass').decode('utf-16')


def parse_line(line: str, lineno: int = 0) -> Tuple[str, str]:
    """Split one logical ``key=value`` line into its unescaped key and value."""
    tokens = _tokenize(line.lstrip(' \t\f'), lineno)

    sep = next((i for i, (ch, esc) in enumerate(tokens) if ch in '=:' and not esc), None)
    if sep is None:
        raise CacheInitError(f"Catalog line {lineno}: no '=' separator in {line!r}")

    key = tokens[:sep]
    while key and key[-1][0] in ' \t\f' and not key[-1][1]:
        key.pop()
    value = tokens[sep + 1:]
    while value and value[0][0] in ' \t\f' and not value[0][1]:
        value.pop(0)

    if not key:
        raise CacheInitError(f"Catalog line {lineno}: empty key")
    try:
        return _join(key), _join(value)
    except UnicodeDecodeError as e:
        raise CacheInitError(f"Catalog line {lineno}: unpaired surrogate escape") from e


def _logical_lines(text: str) -> Iterator[Tuple[int, str]]:
    """Yield (line number, line) with comments dropped and continuations joined."""
    physical = _LINE_BREAK.split(text)
    i = 0
    while i < len(physical):
        lineno = i + 1
        line = physical[i]
        i += 1
        stripped = line.lstrip(' \t\f')
        if not stripped or stripped[0] in '#!':
            continue
        while (len(line) - len(line.rstrip('\\'))) % 2 == 1 and i < len(physical):
            line = line[:-1] + physical[i].lstrip(' \t\f')
            i += 1
        yield lineno, line


class CatalogStore:
    """In-memory catalog backed by a properties-style file."""

    def __init__(self, path: str = DEFAULT_CATALOG_PATH):
        self.path = path
        self._entries: Dict[str, str] = {}

    def load(self) -> Dict[str, str]:
        """Read the catalog from disk, creating an empty file if there is none."""
        try:
            if not os.path.exists(self.path):
                open(self.path, 'a').close()
                logger.info("catalog_created", path=self.path)
            with open(self.path, 'r', encoding='utf-8', newline='') as f:
                text = f.read()
        except (OSError, UnicodeDecodeError) as e:
            logger.error("catalog_load_failed", path=self.path, error=str(e))
            raise CacheInitError(f"Cannot read catalog {self.path}: {e}") from e

        entries = {}
        for lineno, line in _logical_lines(text):
            key, value = parse_line(line, lineno)
            entries[key] = value

        self._entries = entries
        logger.info("catalog_loaded", path=self.path, entries=len(entries))
        return dict(entries)

    def save(self, entries: Optional[Dict[str, str]] = None):
        """Rewrite the whole catalog file atomically."""
        if entries is None:
            entries = self._entries
        else:
            self._entries = dict(entries)

        lines = [CATALOG_COMMENT]
        lines.extend(f"{escape(url, is_key=True)}={escape(validator)}" for url, validator in entries.items())
        content = '\n'.join(lines) + '\n'

        directory = os.path.dirname(os.path.abspath(self.path))
        tmp_path = None
        try:
            fd, tmp_path = tempfile.mkstemp(dir=directory, prefix='.catalog-', suffix='.tmp')
            with os.fdopen(fd, 'w', encoding='utf-8', newline='') as f:
                f.write(content)
            os.chmod(tmp_path, file_mode(self.path))
            os.replace(tmp_path, self.path)
        except OSError as e:
            if tmp_path and os.path.exists(tmp_path):
                os.unlink(tmp_path)
            logger.error("catalog_save_failed", path=self.path, error=str(e))
            raise CachePersistError(f"Cannot write catalog {self.path}: {e}") from e

        logger.debug("catalog_saved", path=self.path, entries=len(entries))

    def get(self, url: str) -> Optional[str]:
        return self._entries.get(url)

    def put(self, url: str, validator: str):
        self._entries[url] = validator

    def items(self):
        return self._entries.items()

    def __contains__(self, url) -> bool:
        return url in self._entries

    def __len__(self) -> int:
        return len(self._entries)
