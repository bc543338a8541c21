"""
Testes do parser de respostas do DuckDuckGo (HTML de resultados e instant answer).
"""

import pytest

from app.services.search_manager import (
    instant_answer_text,
    instant_answer_url,
    parse_instant_answer,
    parse_search_results,
    resolve_result_url,
)


class TestResolveResultUrl:

    def test_redirector_url_is_decoded(self):
        url = "https://duckduckgo.com/l/?uddg=https%3A%2F%2Fexample.com%2Fcareers"
        assert resolve_result_url(url) == "https://example.com/careers"

    def test_protocol_relative_redirector_is_decoded(self):
        url = "//duckduckgo.com/l/?uddg=https%3A%2F%2Fexample.com%2Fjobs%3Fteam%3Dops&rut=abc"
        assert resolve_result_url(url) == "https://example.com/jobs?team=ops"

    @pytest.mark.parametrize("url", [
        "https://example.com/careers",
        "https://example.com",
        "http://www.acme.io/about?x=1",
    ])
    def test_plain_absolute_url_passes_through(self, url):
        assert resolve_result_url(url) == url

    def test_duckduckgo_link_without_target_is_kept(self):
        assert resolve_result_url("/about") == "https://duckduckgo.com/about"

    @pytest.mark.parametrize("url", [None, ""])
    def test_empty_link(self, url):
        assert resolve_result_url(url) == url


class TestParseSearchResults:

    def test_parses_fixture_in_order(self, results_html):
        results = parse_search_results(results_html, limit=10)

        assert results == [
            {
                "title": "Acme Robotics - Warehouse Automation",
                "url": "https://acmerobotics.com/",
                "snippet": "Acme Robotics builds autonomous warehouse robots in San Diego.",
            },
            {
                "title": "Acme Robotics | LinkedIn",
                "url": "https://www.linkedin.com/company/acme-robotics",
                "snippet": "Acme Robotics | 1,204 followers on LinkedIn.",
            },
            {
                "title": "Careers at Acme Robotics",
                "url": "https://example.com/careers",
                "snippet": "",
            },
        ]

    def test_limit_caps_results(self, results_html):
        results = parse_search_results(results_html, limit=2)
        assert [r["url"] for r in results] == [
            "https://acmerobotics.com/",
            "https://www.linkedin.com/company/acme-robotics",
        ]

    @pytest.mark.parametrize("html", [None, "", "<html><body>blocked</body></html>", "<<<not html"])
    def test_malformed_or_empty_page_yields_no_results(self, html):
        assert parse_search_results(html, limit=5) == []

    def test_zero_limit(self, results_html):
        assert parse_search_results(results_html, limit=0) == []


class TestInstantAnswer:

    def test_parse_valid_json(self):
        assert parse_instant_answer('{"Heading": "Acme"}') == {"Heading": "Acme"}

    @pytest.mark.parametrize("body", [None, "", "not json", "[1, 2]", "null"])
    def test_parse_malformed_json_is_empty_answer(self, body):
        assert parse_instant_answer(body) == {}

    def test_url_prefers_abstract_url(self):
        payload = {
            "AbstractURL": "https://en.wikipedia.org/wiki/Acme",
            "Results": [{"FirstURL": "https://acme.com"}],
        }
        assert instant_answer_url(payload) == "https://en.wikipedia.org/wiki/Acme"

    def test_url_falls_back_to_first_result(self):
        payload = {"AbstractURL": "", "Results": [{"FirstURL": "https://acme.com"}]}
        assert instant_answer_url(payload) == "https://acme.com"

    def test_url_missing(self):
        assert instant_answer_url({}) is None
        assert instant_answer_url({"Results": []}) is None

    def test_url_ignores_non_string_values(self):
        assert instant_answer_url({"AbstractURL": 42}) is None
        assert instant_answer_url({"AbstractURL": ["x"], "Results": [{"FirstURL": {"u": 1}}]}) is None
        assert instant_answer_url({"AbstractURL": None, "Results": [{"FirstURL": "https://acme.com"}]}) == "https://acme.com"

    def test_text_field_priority(self):
        payload = {"AbstractText": "", "Abstract": "Acme builds robots.", "Heading": "Acme"}
        assert instant_answer_text(payload) == "Acme builds robots."
        assert instant_answer_text({"Heading": "Acme"}) == "Acme"
        assert instant_answer_text({}) == ""
