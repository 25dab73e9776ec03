"""Tests for the robots.txt politeness policy."""

import httpx
import pytest

pytest_plugins = ('pytest_asyncio',)

from swallows.robots import RobotsTxtParser


AGENT = "SwallowsBot/1.0"


class TestRobotsParsing:
    """Rule table construction and path evaluation."""

    def test_no_rules_allows_everything(self):
        parser = RobotsTxtParser()
        assert parser.is_allowed("/anything", AGENT) is True

    def test_wildcard_disallow(self):
        parser = RobotsTxtParser()
        parser.parse("User-agent: *\nDisallow: /private")

        assert parser.is_allowed("/private", AGENT) is False
        assert parser.is_allowed("/private/page", AGENT) is False
        assert parser.is_allowed("/public", AGENT) is True

    def test_longest_match_wins(self):
        parser = RobotsTxtParser()
        parser.parse("User-agent: *\nDisallow: /a\nAllow: /a/b")

        assert parser.is_allowed("/a/b/c", AGENT) is True
        assert parser.is_allowed("/a/c", AGENT) is False

    def test_longer_disallow_beats_shorter_allow(self):
        parser = RobotsTxtParser()
        parser.parse("User-agent: *\nAllow: /docs\nDisallow: /docs/drafts")

        assert parser.is_allowed("/docs/intro", AGENT) is True
        assert parser.is_allowed("/docs/drafts/1", AGENT) is False

    def test_allow_wins_tie(self):
        parser = RobotsTxtParser()
        parser.parse("User-agent: *\nDisallow: /page\nAllow: /page")

        assert parser.is_allowed("/page", AGENT) is True

    def test_matching_is_case_insensitive(self):
        parser = RobotsTxtParser()
        parser.parse("USER-AGENT: *\nDISALLOW: /Private")

        assert parser.is_allowed("/private/x", AGENT) is False
        assert parser.is_allowed("/PRIVATE", AGENT) is False

    def test_specific_agent_group_beats_wildcard(self):
        parser = RobotsTxtParser()
        parser.parse(
            "User-agent: *\n"
            "Disallow: /\n"
            "\n"
            "User-agent: SwallowsBot\n"
            "Allow: /\n"
        )

        assert parser.is_allowed("/page", AGENT) is True
        assert parser.is_allowed("/page", "SwallowsBot") is True
        assert parser.is_allowed("/page", "OtherBot/2.0") is False

    def test_exact_agent_string_matches(self):
        parser = RobotsTxtParser()
        parser.parse("User-agent: swallowsbot/1.0\nDisallow: /x")

        assert parser.is_allowed("/x", AGENT) is False

    def test_consecutive_user_agents_share_group(self):
        parser = RobotsTxtParser()
        parser.parse("User-agent: alpha\nUser-agent: beta\nDisallow: /shared")

        assert parser.is_allowed("/shared", "alpha") is False
        assert parser.is_allowed("/shared", "beta") is False
        assert parser.is_allowed("/shared", "gamma") is True
        assert sorted(parser.agents) == ["alpha", "beta"]

    def test_user_agent_after_rules_starts_new_group(self):
        parser = RobotsTxtParser()
        parser.parse("User-agent: alpha\nDisallow: /a\nUser-agent: beta\nDisallow: /b")

        assert parser.is_allowed("/a", "beta") is True
        assert parser.is_allowed("/b", "alpha") is True
        assert parser.is_allowed("/a", "alpha") is False

    def test_empty_disallow_restricts_nothing(self):
        parser = RobotsTxtParser()
        parser.parse("User-agent: *\nDisallow:")

        assert parser.is_allowed("/", AGENT) is True
        assert parser.is_allowed("/anything", AGENT) is True

    def test_comments_and_junk_lines_ignored(self):
        parser = RobotsTxtParser()
        parser.parse(
            "# robots for example.com\n"
            "User-agent: * # everyone\n"
            "this line has no separator\n"
            "Disallow: /tmp # scratch space\n"
            "Sitemap: https://example.com/sitemap.xml\n"
        )

        assert parser.is_allowed("/tmp/file", AGENT) is False
        assert parser.is_allowed("/tmpfoo", AGENT) is False
        assert parser.is_allowed("/home", AGENT) is True

    def test_empty_path_treated_as_root(self):
        parser = RobotsTxtParser()
        parser.parse("User-agent: *\nDisallow: /")

        assert parser.is_allowed("", AGENT) is False

    def test_is_url_allowed_uses_path_and_query(self):
        parser = RobotsTxtParser()
        parser.parse("User-agent: *\nDisallow: /search?q=")

        assert parser.is_url_allowed("https://example.com/search?q=shoes", AGENT) is False
        assert parser.is_url_allowed("https://example.com/search", AGENT) is True
        assert parser.is_url_allowed("https://example.com", AGENT) is True

    def test_reparse_replaces_rules(self):
        parser = RobotsTxtParser()
        content = "User-agent: *\nDisallow: /a"
        parser.parse(content)
        parser.parse(content)

        assert parser.agents == ["*"]
        assert parser.is_allowed("/a", AGENT) is False

        parser.parse("User-agent: *\nDisallow: /b")
        assert parser.is_allowed("/a", AGENT) is True
        assert parser.is_allowed("/b", AGENT) is False


class TestRobotsLoading:
    """Fetching robots.txt from the seed's origin."""

    @pytest.mark.asyncio
    async def test_load_parses_fetched_file(self):
        requested = []

        def handler(request):
            requested.append(str(request.url))
            return httpx.Response(200, text="User-agent: *\nDisallow: /admin")

        parser = RobotsTxtParser(transport=httpx.MockTransport(handler))
        await parser.load("https://example.com/some/page?x=1", AGENT)

        assert requested == ["https://example.com/robots.txt"]
        assert parser.robots_url == "https://example.com/robots.txt"
        assert parser.is_allowed("/admin", AGENT) is False
        assert parser.is_allowed("/", AGENT) is True

    @pytest.mark.asyncio
    async def test_missing_file_allows_all(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(404))
        parser = RobotsTxtParser(transport=transport)

        await parser.load("https://example.com/", AGENT)

        assert parser.agents == []
        assert parser.is_allowed("/admin", AGENT) is True

    @pytest.mark.asyncio
    async def test_network_error_allows_all(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        parser = RobotsTxtParser(transport=httpx.MockTransport(handler))
        parser.parse("User-agent: *\nDisallow: /")

        await parser.load("https://example.com/", AGENT)

        assert parser.is_allowed("/anything", AGENT) is True
