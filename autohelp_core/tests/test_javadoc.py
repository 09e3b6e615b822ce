import pytest

from autohelp_core.domain.exceptions import ApiError, NetworkError
from autohelp_core.domain.models import SearchHit
from autohelp_core.knowledge.javadoc import JavadocFinder, derive_root, extract_description, package_identifier


JAVADOC_8_PAGE = """
<html><body>
<div class="header"><h2 title="Class NullPointerException">Class NullPointerException</h2></div>
<div class="contentContainer">
<div class="description"><ul class="blockList"><li class="blockList">
<div class="block">Thrown when an application attempts to use <code>null</code>
in a case where an object is required.</div>
</li></ul></div>
</div>
</body></html>
"""

JAVADOC_17_PAGE = """
<html><body><main>
<section class="class-description" id="class-description">
<div class="block">Signals that a method has been invoked at an illegal time.</div>
</section>
</main></body></html>
"""


class FakePages:
    name = "paste"

    def __init__(self, pages):
        self.pages = pages
        self.requested = []

    async def fetch_text(self, url):
        self.requested.append(url)
        page = self.pages.get(url)
        if page is None:
            raise ApiError(code="API_ERROR", message="not found", http_status=404, url=url)
        if isinstance(page, Exception):
            raise page
        return page


class FakeSearch:
    def __init__(self, hits):
        self.hits = hits
        self.queries = []

    async def search(self, query):
        self.queries.append(query)
        return self.hits


def test_package_identifier():
    assert package_identifier("java.lang") == "java"
    assert package_identifier("javax.annotation") == "java"
    assert package_identifier("org.bukkit.plugin") == "org.bukkit"
    assert package_identifier("com.example") == "com.example"


def test_derive_root():
    url = "https://example.org/docs/api/com/example/lib/FooException.html"
    assert derive_root(url, "com.example.lib") == "https://example.org/docs/api/"
    assert derive_root("https://example.org/other.html", "com.example.lib") is None


def test_extract_description_from_both_layouts():
    assert extract_description(JAVADOC_8_PAGE) == (
        "Thrown when an application attempts to use null in a case where an object is required."
    )
    assert extract_description(JAVADOC_17_PAGE) == "Signals that a method has been invoked at an illegal time."
    assert extract_description("<html></html>") is None


@pytest.mark.asyncio
async def test_find_uses_local_index():
    url = "https://docs.oracle.com/javase/8/docs/api/java/lang/NullPointerException.html"
    search = FakeSearch([])
    finder = JavadocFinder(FakePages({url: JAVADOC_8_PAGE}), search=search)
    entry = await finder.find("java.lang.NullPointerException")
    assert entry.url == url
    assert entry.description.startswith("Thrown when an application")
    assert search.queries == []


@pytest.mark.asyncio
async def test_find_falls_back_to_search():
    url = "https://example.org/docs/api/com/example/lib/FooException.html"
    search = FakeSearch([SearchHit(title="FooException (API)", url=url)])
    finder = JavadocFinder(FakePages({url: JAVADOC_17_PAGE}), search=search, index={})
    entry = await finder.find("com.example.lib.FooException")
    assert entry.url == url
    assert search.queries == ["FooException javadoc"]


@pytest.mark.asyncio
async def test_find_caches_results():
    pages = FakePages({})
    finder = JavadocFinder(pages, search=FakeSearch([]), index={"java": "https://docs/"})
    assert await finder.find("java.lang.IllegalStateException") is None
    assert await finder.find("java.lang.IllegalStateException") is None
    assert pages.requested == ["https://docs/java/lang/IllegalStateException.html"]


@pytest.mark.asyncio
async def test_find_without_search_or_hit():
    finder = JavadocFinder(FakePages({}), search=None, index={})
    assert await finder.find("com.example.lib.FooException") is None
    finder = JavadocFinder(FakePages({}), search=FakeSearch([]), index={})
    assert await finder.find("com.example.lib.FooException") is None
    assert await finder.find("FooException") is None


@pytest.mark.asyncio
async def test_network_errors_are_not_cached():
    url = "https://docs/java/lang/IllegalStateException.html"
    pages = FakePages({url: NetworkError(code="NETWORK_ERROR", message="down")})
    finder = JavadocFinder(pages, index={"java": "https://docs/"})
    assert await finder.find("java.lang.IllegalStateException") is None
    pages.pages[url] = JAVADOC_17_PAGE
    entry = await finder.find("java.lang.IllegalStateException")
    assert entry.url == url


@pytest.mark.asyncio
async def test_find_unqualified_name_uses_search_hit_page():
    url = "https://docs.oracle.com/javase/8/docs/api/java/lang/NullPointerException.html"
    search = FakeSearch([SearchHit(title="NullPointerException (Java Platform SE 8)", url=url + "#method.summary")])
    pages = FakePages({url: JAVADOC_8_PAGE})
    finder = JavadocFinder(pages, search=search)
    entry = await finder.find("NullPointerException")
    assert entry.url == url
    assert entry.description.startswith("Thrown when an application")
    assert search.queries == ["NullPointerException javadoc"]
    assert pages.requested == [url]


@pytest.mark.asyncio
async def test_find_unqualified_name_ignores_non_class_hit():
    search = FakeSearch([SearchHit(title="Java docs", url="https://docs.oracle.com/javase/8/docs/api/")])
    pages = FakePages({})
    finder = JavadocFinder(pages, search=search)
    assert await finder.find("NullPointerException") is None
    assert pages.requested == []
