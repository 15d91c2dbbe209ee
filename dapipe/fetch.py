from __future__ import annotations
from typing import Any, Callable, Iterable, Iterator, Optional, TypeVar
import io
import logging
import os
import urllib.error
import urllib.parse
import urllib.request

import lxml.etree
import lxml.html
import pandas as pd

from dapipe.config import FetchConfig
from dapipe.errors import FetchError, ParseError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _is_url(source: str) -> bool:
    return urllib.parse.urlparse(source).scheme in ("http", "https")


def fetch_bytes(source: str, config: Optional[FetchConfig] = None) -> bytes:
    """
    Retrieve the raw contents of a source -- an http(s) URL, a file:// URL or a local path. There is a
    single attempt: any failure raises a FetchError naming the source.
    """
    config = config or FetchConfig()
    logger.debug("[fetch] %s", source)
    if _is_url(source):
        request = urllib.request.Request(source, headers={"User-Agent": config.user_agent})
        try:
            with urllib.request.urlopen(request, timeout=config.timeout) as response:
                return response.read()
        except urllib.error.HTTPError as e:
            raise FetchError("HTTP %d %s" % (e.code, e.reason), subject=source) from e
        except (urllib.error.URLError, OSError) as e:
            raise FetchError("Could not retrieve source: %s" % e, subject=source) from e
    path = source[len("file://"):] if source.startswith("file://") else source
    try:
        with open(os.path.expanduser(path), "rb") as f:
            return f.read()
    except OSError as e:
        raise FetchError("Could not read source: %s" % e.strerror, subject=source) from e


def fetch_csv(source: str, config: Optional[FetchConfig] = None, **read_csv_kwargs: Any) -> pd.DataFrame:
    """
    Retrieve a delimited text file and parse it into a data frame. Extra keyword arguments go to
    pandas.read_csv (sep, encoding, ...).
    """
    raw = fetch_bytes(source, config)
    try:
        frame = pd.read_csv(io.BytesIO(raw), **read_csv_kwargs)
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
        raise ParseError("Malformed CSV: %s" % e, stage="fetch", subject=source) from e
    # rows wider than the header make pandas move the extra leading fields into the index
    if "index_col" not in read_csv_kwargs and len(frame) and not isinstance(frame.index, pd.RangeIndex):
        raise ParseError("Malformed CSV: rows have more fields than the header", stage="fetch", subject=source)
    return frame


def fetch_html(source: str, config: Optional[FetchConfig] = None) -> lxml.html.HtmlElement:
    """
    Retrieve an HTML document and parse it into a navigable tree. The source is recorded as the document's
    base URL, so relative links can be resolved later.
    """
    raw = fetch_bytes(source, config)
    try:
        return lxml.html.document_fromstring(raw, base_url=source)
    except (lxml.etree.ParserError, ValueError) as e:
        raise ParseError("Malformed HTML: %s" % e, stage="fetch", subject=source) from e


def fetch_all(
    sources: Iterable[str],
    fetch: Callable[[str], T] = fetch_html,  # type: ignore
) -> Iterator[T]:
    """
    Fetch several sources one after the other, in input order. The first failure ends the iteration.
    """
    for source in sources:
        yield fetch(source)
