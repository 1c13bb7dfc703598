"""
Tests for assistant.tools.web_search, with DuckDuckGo served by httpx.MockTransport.
"""

import json

import httpx
import pytest

from assistant.exceptions import SearchParseError
from assistant.tools import WebSearch, fallback_result
from assistant.tools.web_search import parse_instant_answer, parse_links_payload

LANDING = "<html><script>vqd='4-12345'</script></html>"


def _links_body(results):
    return "ddg_spice_light.web(" + json.dumps({"results": results}) + ");"


def _router(links=None, instant=None, landing=LANDING):
    def handler(request: httpx.Request) -> httpx.Response:
        host = request.url.host
        if host == "duckduckgo.com":
            return httpx.Response(200, text=landing)
        if host == "links.duckduckgo.com":
            assert request.url.params["vqd"] == "4-12345"
            if links is None:
                return httpx.Response(503)
            return httpx.Response(200, text=links)
        if host == "api.duckduckgo.com":
            if instant is None:
                return httpx.Response(503)
            return httpx.Response(200, json=instant)
        raise AssertionError(f"unexpected host {host}")

    return httpx.MockTransport(handler)


class TestParsing:
    def test_links_payload_uses_hostname_when_source_missing(self):
        body = _links_body(
            [
                {"t": "Python", "u": "https://www.python.org/about", "a": "The language"},
                {"t": "Docs", "u": "https://docs.python.org/3/", "i": "docs.python.org"},
            ]
        )
        results = parse_links_payload(body)
        assert [r.title for r in results] == ["Python", "Docs"]
        assert results[0].source == "www.python.org"
        assert results[0].description == "The language"

    def test_entries_without_url_are_skipped(self):
        results = parse_links_payload(_links_body([{"t": "no link"}, {"u": "https://a.example"}]))
        assert len(results) == 1
        assert results[0].title == "No title"

    def test_garbage_raises(self):
        with pytest.raises(SearchParseError):
            parse_links_payload("<html>not json</html>")

    def test_instant_answer_abstract_and_topics(self):
        data = {
            "Heading": "Python",
            "Abstract": "A programming language.",
            "AbstractURL": "https://en.wikipedia.org/wiki/Python",
            "RelatedTopics": [
                {"Text": "CPython - reference implementation", "FirstURL": "https://duckduckgo.com/CPython"},
                {"Name": "group without text"},
            ],
        }
        results = parse_instant_answer(data, "python")
        assert [r.source for r in results] == ["DuckDuckGo Abstract", "DuckDuckGo Related"]
        assert results[1].title == "CPython"

    def test_fallback_result_links_out(self):
        result = fallback_result("a&b c")
        assert result.title == 'Search for "a&b c" on DuckDuckGo'
        assert result.url == "https://duckduckgo.com/?q=a%26b%20c"


class TestSearch:
    def test_primary_results(self, settings):
        body = _links_body([{"t": "Hit", "u": "https://hit.example/page", "a": "found"}])
        results = WebSearch(settings, transport=_router(links=body)).search("hit")
        assert len(results) == 1
        assert results[0].url == "https://hit.example/page"
        assert results[0].source == "hit.example"

    def test_instant_answer_when_primary_fails(self, settings):
        instant = {"Heading": "Moon", "Abstract": "Earth's satellite.", "AbstractURL": "https://m.example"}
        results = WebSearch(settings, transport=_router(instant=instant)).search("moon")
        assert [r.title for r in results] == ["Moon"]

    def test_missing_vqd_falls_through(self, settings):
        instant = {"Heading": "Moon", "Abstract": "Earth's satellite."}
        transport = _router(links=_links_body([]), instant=instant, landing="<html></html>")
        results = WebSearch(settings, transport=transport).search("moon")
        assert results[0].source == "DuckDuckGo Abstract"

    def test_everything_failing_gives_single_link_out(self, settings):
        transport = _router(links="garbage", instant={"RelatedTopics": []})
        results = WebSearch(settings, transport=transport).search("nothing here")
        assert results == [fallback_result("nothing here")]

    def test_network_errors_give_link_out(self, settings):
        def handler(request):
            raise httpx.ConnectError("offline", request=request)

        results = WebSearch(settings, transport=httpx.MockTransport(handler)).search("q")
        assert len(results) == 1
        assert results[0].url == "https://duckduckgo.com/?q=q"
