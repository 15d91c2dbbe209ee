import pytest

from dapipe.errors import ParseError
from dapipe.scrape import (
    CardinalityPolicy,
    FieldSpec,
    attrs,
    crawl,
    css,
    extract_rows,
    extract_table,
    links,
    parse_html,
    select_all,
    select_one,
    text_of,
    texts,
    xpath,
)

PAGE = """
<html><body>
  <div class="item" id="i1">
    <h2><a href="/alpha">Alpha
      release</a></h2>
    <span class="price">10</span>
  </div>
  <div class="item" id="i2">
    <h2><a href="beta.html">Beta</a></h2>
  </div>
  <table id="scores">
    <tr><th>name</th><th>score</th></tr>
    <tr><td>x</td><td>1</td></tr>
    <tr><td>y</td><td>2</td></tr>
  </table>
  <a class="next" href="page2.html">next</a>
</body></html>
"""


@pytest.fixture
def tree():
    return parse_html(PAGE, base_url="http://example.com/list/")


def test_select_all(tree):
    assert len(select_all(tree, ".item")) == 2
    assert select_all(tree, ".missing") == []
    assert len(select_all(tree, xpath("//div[@class='item']"))) == 2


def test_select_all_scalar_xpath(tree):
    assert select_all(tree, xpath("count(//div)")) == ["2.0"]


def test_invalid_selectors(tree):
    with pytest.raises(ParseError):
        select_all(tree, "div[")
    with pytest.raises(ParseError):
        select_all(tree, xpath("//div[@"))


def test_select_one_policies(tree):
    assert select_one(tree, ".missing") is None
    assert select_one(tree, ".item").get("id") == "i1"
    assert select_one(tree, ".item", CardinalityPolicy.REQUIRE).get("id") == "i1"
    assert select_one(tree, "#scores", CardinalityPolicy.STRICT).tag == "table"
    with pytest.raises(ParseError):
        select_one(tree, ".missing", CardinalityPolicy.REQUIRE)
    with pytest.raises(ParseError):
        select_one(tree, ".item", CardinalityPolicy.STRICT)
    with pytest.raises(ParseError):
        select_one(tree, ".missing", CardinalityPolicy.STRICT)


def test_text_and_attributes(tree):
    assert texts(tree, "h2 a") == ["Alpha release", "Beta"]
    assert texts(tree, xpath("//h2/a/@href")) == ["/alpha", "beta.html"]
    assert attrs(tree, ".item", "id") == ["i1", "i2"]
    assert text_of(None) is None


def test_links_are_absolute(tree):
    assert links(tree, "h2 a") == ["http://example.com/alpha", "http://example.com/list/beta.html"]
    assert links(tree, css("a.next")) == ["http://example.com/list/page2.html"]


def test_field_spec_parse():
    assert FieldSpec.parse("h2 a@href") == FieldSpec(css("h2 a"), "href")
    assert FieldSpec.parse("@id") == FieldSpec(None, "id")
    assert FieldSpec.parse("./h2/a/@href", "xpath") == FieldSpec(xpath("./h2/a/@href"), None)


def test_extract_rows(tree):
    frame = extract_rows(tree, ".item", {
        "id": "@id",
        "title": "h2 a",
        "link": "h2 a@href",
        "price": ".price",
    })
    assert list(frame.columns) == ["id", "title", "link", "price"]
    assert frame["id"].tolist() == ["i1", "i2"]
    assert frame["title"].tolist() == ["Alpha release", "Beta"]
    assert frame["link"].tolist() == ["http://example.com/alpha", "http://example.com/list/beta.html"]
    assert frame["price"].tolist() == ["10", None]


def test_extract_rows_no_match(tree):
    frame = extract_rows(tree, ".product", {"title": "h2"})
    assert len(frame) == 0
    assert list(frame.columns) == ["title"]


def test_extract_table(tree):
    frame = extract_table(tree, "#scores")
    assert list(frame.columns) == ["name", "score"]
    assert frame["name"].tolist() == ["x", "y"]
    assert frame["score"].tolist() == [1, 2]
    with pytest.raises(ParseError):
        extract_table(tree, ".item")
    with pytest.raises(ParseError):
        extract_table(tree, "table.missing")


def make_site(pages):
    def fetch(url):
        fetch.requested.append(url)
        return parse_html(pages[url], base_url=url)
    fetch.requested = []
    return fetch


def test_crawl_follows_next_links():
    fetch = make_site({
        "http://example.com/1": '<a class="next" href="2">next</a>',
        "http://example.com/2": '<a class="next" href="3">next</a>',
        "http://example.com/3": '<p>the end</p>',
    })
    pages = list(crawl("http://example.com/1", "a.next", fetch=fetch))
    assert len(pages) == 3
    assert fetch.requested == ["http://example.com/1", "http://example.com/2", "http://example.com/3"]


def test_crawl_stops_on_cycles_and_limit():
    fetch = make_site({
        "http://example.com/1": '<a class="next" href="2">next</a>',
        "http://example.com/2": '<a class="next" href="1">back</a>',
    })
    assert len(list(crawl("http://example.com/1", "a.next", fetch=fetch))) == 2
    assert len(list(crawl("http://example.com/1", "a.next", max_pages=1, fetch=fetch))) == 1


def test_field_policy():
    tree = parse_html("<div class='p'><h2>First</h2><h2>Second</h2></div><div class='p'><h2>Only</h2></div>")
    assert extract_rows(tree, ".p", {"name": "h2"})["name"].tolist() == ["First", "Only"]
    with pytest.raises(ParseError):
        extract_rows(tree, ".p", {"name": "h2"}, CardinalityPolicy.STRICT)
    with pytest.raises(ParseError):
        extract_rows(tree, ".p", {"name": "h3"}, CardinalityPolicy.REQUIRE)


def test_missing_fields_are_none(tree):
    frame = extract_rows(tree, ".item", {"price": ".price"})
    assert frame["price"][1] is None


def test_field_spec_at_inside_selector():
    mail = 'a[href^="mailto:x@y"]'
    assert FieldSpec.parse(mail) == FieldSpec(css(mail), None)
    assert FieldSpec.parse(mail + "@href") == FieldSpec(css(mail), "href")
    assert FieldSpec.parse("a@data-id") == FieldSpec(css("a"), "data-id")


def test_extract_table_policy():
    tree = parse_html("<table><tr><th>n</th></tr><tr><td>1</td></tr></table>"
                      "<table><tr><th>n</th></tr><tr><td>2</td></tr></table>")
    assert extract_table(tree, "table", policy=CardinalityPolicy.FIRST)["n"].tolist() == [1]
    with pytest.raises(ParseError):
        extract_table(tree, "table", policy=CardinalityPolicy.STRICT)
    with pytest.raises(ParseError):
        extract_table(tree, "table.missing", policy=CardinalityPolicy.FIRST)
