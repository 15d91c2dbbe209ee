"""
Structural extraction from HTML.

Nodes are found with Selectors, which are either CSS selectors or XPath expressions. There are two explicit
ways to select: select_all() returns every match (possibly none), select_one() returns a single node, and
what it does when the number of matches is not exactly one is decided by a CardinalityPolicy.
"""
from __future__ import annotations
from typing import Any, Callable, Dict, Iterator, List, Mapping, NamedTuple, Optional, Union
from enum import Enum
import io
import logging
import re
import urllib.parse

import lxml.etree
import lxml.html
import pandas as pd
from cssselect import SelectorError
from lxml.cssselect import CSSSelector

from dapipe.errors import ParseError
from dapipe.fetch import fetch_html

logger = logging.getLogger(__name__)

Node = lxml.html.HtmlElement
# XPath expressions can select attribute values or text directly, which come back as strings
Match = Union[Node, str]

_WHITESPACE = re.compile(r"\s+")
_ATTRIBUTE_NAME = re.compile(r"[\w:-]+")


class CardinalityPolicy(Enum):
    FIRST = "first"  # first match, None if nothing matches
    REQUIRE = "require"  # first match, error if nothing matches
    STRICT = "strict"  # error unless there is exactly one match


class Selector(NamedTuple):
    expression: str
    kind: str = "css"

    def __str__(self) -> str:
        return "%s:%s" % (self.kind, self.expression)


def css(expression: str) -> Selector:
    return Selector(expression, "css")


def xpath(expression: str) -> Selector:
    return Selector(expression, "xpath")


def _as_selector(selector: Union[Selector, str]) -> Selector:
    return css(selector) if isinstance(selector, str) else selector


def parse_html(text: Union[str, bytes], base_url: Optional[str] = None) -> Node:
    try:
        return lxml.html.document_fromstring(text, base_url=base_url)
    except (lxml.etree.ParserError, ValueError) as e:
        raise ParseError("Malformed HTML: %s" % e, subject=base_url) from e


def select_all(tree: Node, selector: Union[Selector, str]) -> List[Match]:
    """
    All nodes matching the selector, in document order. No match is not an error: the result is empty.
    """
    selector = _as_selector(selector)
    try:
        if selector.kind == "css":
            return list(CSSSelector(selector.expression)(tree))
        elif selector.kind == "xpath":
            result = tree.xpath(selector.expression)
        else:
            raise ParseError("Unknown selector kind %r" % selector.kind, subject=selector)
    except SelectorError as e:
        raise ParseError("Invalid CSS selector: %s" % e, subject=selector) from e
    except lxml.etree.XPathError as e:
        raise ParseError("Invalid XPath expression: %s" % e, subject=selector) from e
    if not isinstance(result, list):
        # scalar XPath results, e.g. count(...) or string(...)
        return [str(result)]
    return result


def select_one(
    tree: Node,
    selector: Union[Selector, str],
    policy: CardinalityPolicy = CardinalityPolicy.FIRST,
) -> Optional[Match]:
    """
    A single node matching the selector, according to the policy.
    """
    matches = select_all(tree, selector)
    if policy is CardinalityPolicy.STRICT and len(matches) != 1:
        raise ParseError("Expected exactly one match, found %d" % len(matches), subject=_as_selector(selector))
    if not matches:
        if policy is CardinalityPolicy.REQUIRE:
            raise ParseError("Expected a match, found none", subject=_as_selector(selector))
        return None
    return matches[0]


def text_of(node: Optional[Match]) -> Optional[str]:
    """
    The text content of a node with runs of whitespace collapsed, or None for no node.
    """
    if node is None:
        return None
    text = node if isinstance(node, str) else node.text_content()
    return _WHITESPACE.sub(" ", text).strip()


def attr_of(node: Optional[Match], name: str) -> Optional[str]:
    if node is None or isinstance(node, str):
        return None
    return node.get(name)


def texts(tree: Node, selector: Union[Selector, str]) -> List[str]:
    return [text_of(node) or "" for node in select_all(tree, selector)]


def attrs(tree: Node, selector: Union[Selector, str], name: str) -> List[Optional[str]]:
    return [attr_of(node, name) for node in select_all(tree, selector)]


def _absolute(node: Node, href: str) -> str:
    base = node.base_url
    return urllib.parse.urljoin(base, href) if base else href


def links(tree: Node, selector: Union[Selector, str] = "a[href]") -> List[str]:
    """
    Absolute URLs of the href attributes of the matching nodes, resolved against the document's URL.
    """
    result = []
    for node in select_all(tree, selector):
        href = attr_of(node, "href")
        if href:
            result.append(_absolute(node, href))
    return result


class FieldSpec(NamedTuple):
    """
    How to get one value out of a row node: a selector relative to the row (empty for the row itself), and
    either its text or one of its attributes.
    """
    selector: Optional[Selector]
    attribute: Optional[str] = None

    @classmethod
    def parse(cls, spec: str, kind: str = "css") -> FieldSpec:
        """
        Parse the short form used in configuration files: "h2 a" is the text of the first "h2 a" in the
        row, "h2 a@href" its href attribute, "@id" the row's own id attribute. For XPath, attributes are
        selected by the expression itself ("./h2/a/@href").
        """
        attribute = None
        if kind == "css" and "@" in spec:
            head, tail = spec.rsplit("@", 1)
            # an "@" inside an attribute selector, e.g. a[href^="mailto:x@y"], is part of the selector
            if _ATTRIBUTE_NAME.fullmatch(tail):
                spec, attribute = head, tail
        spec = spec.strip()
        return cls(Selector(spec, kind) if spec else None, attribute)


def _extract_field(row: Node, field: FieldSpec, policy: CardinalityPolicy) -> Optional[str]:
    node: Optional[Match] = row
    if field.selector is not None:
        node = select_one(row, field.selector, policy)
    if field.attribute is not None:
        value = attr_of(node, field.attribute)
        if value is not None and field.attribute in ("href", "src") and not isinstance(node, str):
            value = _absolute(node, value)  # type: ignore
        return value
    return text_of(node)


def extract_rows(
    tree: Node,
    row_selector: Union[Selector, str],
    fields: Mapping[str, Union[FieldSpec, str]],
    policy: CardinalityPolicy = CardinalityPolicy.FIRST,
) -> pd.DataFrame:
    """
    Turn every node matching row_selector into one row, with one column per field. Within a row, each
    field selector is resolved with the policy; under FIRST, fields that find nothing are missing (None).
    If no row matches, the result is an empty frame that still has all the columns.
    """
    row_selector = _as_selector(row_selector)
    specs = {
        name: FieldSpec.parse(spec, row_selector.kind) if isinstance(spec, str) else spec
        for name, spec in fields.items()
    }
    rows = []
    for row in select_all(tree, row_selector):
        if isinstance(row, str):
            raise ParseError("Row selector must select elements, not strings", subject=row_selector)
        rows.append({name: _extract_field(row, spec, policy) for name, spec in specs.items()})
    logger.debug("[scrape] %d rows for %s", len(rows), row_selector)
    return pd.DataFrame(rows, columns=list(specs), dtype=object)


def extract_table(
    tree: Node,
    selector: Union[Selector, str] = "table",
    header: bool = True,
    policy: CardinalityPolicy = CardinalityPolicy.REQUIRE,
) -> pd.DataFrame:
    """
    Parse the table matching the selector into a data frame. The policy decides what happens when several
    nodes match; no match at all is always an error.
    """
    node = select_one(tree, selector, policy)
    if node is None:
        raise ParseError("Expected a table, found none", subject=_as_selector(selector))
    if isinstance(node, str) or node.tag != "table":  # type: ignore
        raise ParseError("Selection is not a table", subject=_as_selector(selector))
    html = lxml.html.tostring(node, encoding="unicode")
    try:
        tables = pd.read_html(io.StringIO(html), header=0 if header else None)
    except ValueError as e:
        raise ParseError("Could not parse table: %s" % e, subject=_as_selector(selector)) from e
    return tables[0]


def crawl(
    start: str,
    next_selector: Union[Selector, str],
    max_pages: int = 10,
    fetch: Callable[[str], Node] = fetch_html,
) -> Iterator[Node]:
    """
    Fetch a page, then keep following its "next page" link, one page at a time. Stops when a page has no
    such link, when a link points to a page already seen, or after max_pages pages.
    """
    seen = set()
    url: Optional[str] = start
    while url is not None and len(seen) < max_pages and url not in seen:
        seen.add(url)
        tree = fetch(url)
        yield tree
        next_links = links(tree, next_selector)
        url = next_links[0] if next_links else None
