"""Tests for the command-line interface."""

import pytest

from swallows.cli import build_crawl_config, build_parser, ensure_scheme, main
from swallows.database import LocalSqliteDatabase
from swallows.models import Page, ScanSession


@pytest.fixture
def db_url(tmp_path):
    return f"sqlite:///{tmp_path / 'cli.db'}"


def _seed_session(db_url, pages):
    db = LocalSqliteDatabase(db_url=db_url)
    session = ScanSession(base_url="https://example.com/", user_agent="SwallowsBot/1.0")
    db.create_session(session)
    for page in pages:
        page.session_id = session.id
        db.save_page(page)
    db.close()
    return session.id


class TestCrawlOptions:

    def test_command_line_overrides(self):
        args = build_parser().parse_args([
            "crawl", "https://example.com",
            "--max-pages", "5",
            "--max-depth", "-1",
            "--concurrency", "3",
            "--user-agent", "CliBot/1.0",
            "--delay", "0.25",
            "--save-images",
        ])

        config = build_crawl_config(args)

        assert config.max_pages == 5
        assert config.max_depth is None
        assert config.concurrent_requests == 3
        assert config.user_agent == "CliBot/1.0"
        assert config.request_delay == 0.25
        assert config.save_images is True

    def test_config_file_is_used(self, tmp_path):
        path = tmp_path / "crawl.yaml"
        path.write_text("crawler:\n  max_pages: 7\n  timeout: 12\n")

        args = build_parser().parse_args(["crawl", "https://example.com", "--config", str(path)])
        config = build_crawl_config(args)

        assert config.max_pages == 7
        assert config.timeout == 12

    def test_invalid_options_rejected(self):
        args = build_parser().parse_args(["crawl", "https://example.com", "--max-pages", "0"])

        with pytest.raises(ValueError):
            build_crawl_config(args)


class TestCommands:

    def test_sessions_empty(self, db_url, capsys):
        assert main(["sessions", "--db", db_url]) == 0
        assert "No scan sessions found." in capsys.readouterr().out

    def test_sessions_lists_stored_sessions(self, db_url, capsys):
        session_id = _seed_session(db_url, [])

        assert main(["sessions", "--db", db_url]) == 0

        out = capsys.readouterr().out
        assert f"#{session_id}" in out
        assert "https://example.com/" in out

    def test_compare(self, db_url, capsys):
        first = _seed_session(db_url, [Page(url="https://example.com/", status_code=200)])
        second = _seed_session(db_url, [Page(url="https://example.com/", status_code=500)])

        assert main(["compare", str(first), str(second), "--db", db_url]) == 0

        out = capsys.readouterr().out
        assert "Status changes (1)" in out
        assert "200 -> 500" in out

    def test_compare_unknown_session(self, db_url, capsys):
        assert main(["compare", "1", "2", "--db", db_url]) == 1

    def test_duplicates(self, db_url, capsys):
        session_id = _seed_session(db_url, [
            Page(url="https://example.com/a", status_code=200, content_length=5, content_hash="same"),
            Page(url="https://example.com/b", status_code=200, content_length=5, content_hash="same"),
        ])

        assert main(["duplicates", str(session_id), "--db", db_url]) == 0

        out = capsys.readouterr().out
        assert "Duplicate content groups (1)" in out
        assert "https://example.com/b" in out

    def test_duplicates_unknown_session(self, db_url, capsys):
        assert main(["duplicates", "42", "--db", db_url]) == 1
        assert "not found" in capsys.readouterr().out

    def test_crawl_rejects_non_http_scheme(self, db_url, capsys):
        assert main(["crawl", "ftp://example.com/", "--db", db_url]) == 1
        assert "Only http and https URLs can be crawled" in capsys.readouterr().out

        assert main(["sessions", "--db", db_url]) == 0
        assert "No scan sessions found." in capsys.readouterr().out


def test_ensure_scheme():
    assert ensure_scheme("example.com") == "https://example.com"
    assert ensure_scheme("example.com/blog") == "https://example.com/blog"
    assert ensure_scheme("http://example.com") == "http://example.com"
    assert ensure_scheme("ftp://example.com") == "ftp://example.com"
