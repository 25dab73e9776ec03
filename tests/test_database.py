# tests/test_database.py
import sqlite3
from datetime import datetime, timedelta

import pytest

from swallows.database import LocalSqliteDatabase, get_db_client
from swallows.models import ImageAsset, Link, Page, ScanSession, ScanStatus


@pytest.fixture
def test_db(tmp_path):
    """Pytest fixture to set up and tear down a file-backed test database."""
    db = LocalSqliteDatabase(db_url=f"sqlite:///{tmp_path / 'test_swallows.db'}")
    yield db
    db.close()


def _session(base_url="https://example.com/", started_at=None):
    return ScanSession(
        base_url=base_url,
        user_agent="SwallowsBot/1.0",
        started_at=started_at or datetime.now(),
    )


def test_schema_creates_tables(test_db):
    """All four tables exist after construction."""
    rows = test_db.conn.execute(
        "SELECT name FROM sqlite_master WHERE type = 'table'"
    ).fetchall()
    tables = {row['name'] for row in rows}
    assert {"scan_sessions", "pages", "links", "image_assets"} <= tables


def test_create_and_update_session(test_db):
    """Creating a session assigns an id; updating persists the terminal state."""
    session = _session()
    session_id = test_db.create_session(session)

    assert session_id is not None
    assert session.id == session_id

    stored = test_db.get_session(session_id)
    assert stored.status == ScanStatus.RUNNING
    assert stored.finished_at is None
    assert stored.base_url == "https://example.com/"

    session.status = ScanStatus.COMPLETED
    session.finished_at = datetime.now()
    session.total_pages_scanned = 7
    test_db.update_session(session)

    stored = test_db.get_session(session_id)
    assert stored.status == ScanStatus.COMPLETED
    assert stored.total_pages_scanned == 7
    assert isinstance(stored.finished_at, datetime)


def test_update_session_without_id_raises(test_db):
    with pytest.raises(ValueError):
        test_db.update_session(_session())


def test_get_missing_session_returns_none(test_db):
    assert test_db.get_session(999) is None


def test_list_sessions_newest_first(test_db):
    older = _session("https://old.example/", datetime.now() - timedelta(days=1))
    newer = _session("https://new.example/", datetime.now())
    test_db.create_session(older)
    test_db.create_session(newer)

    sessions = test_db.list_sessions()

    assert [s.base_url for s in sessions] == ["https://new.example/", "https://old.example/"]


def test_save_page_with_links_and_images(test_db):
    """Page, links and images are written together and read back intact."""
    session = _session()
    test_db.create_session(session)

    page = Page(
        url="https://example.com/",
        final_url="https://example.com/",
        session_id=session.id,
        status_code=200,
        content_length=1234,
        title="Home",
        has_viewport=True,
        is_title_optimal=False,
        internal_links_count=1,
        external_links_count=1,
        content_hash="abc123",
        links=[
            Link(url="https://example.com/about", text="About", is_internal=True),
            Link(url="https://other.org/", text="Other", is_internal=False),
        ],
        images=[ImageAsset(url="https://example.com/logo.png", alt_text="Logo")],
    )

    page_id = test_db.save_page(page)

    assert page.id == page_id
    assert all(link.page_id == page_id and link.id is not None for link in page.links)
    assert page.images[0].page_id == page_id

    pages = test_db.get_pages_for_session(session.id)
    assert len(pages) == 1
    stored = pages[0]
    assert stored.id == page_id
    assert stored.title == "Home"
    assert stored.status_code == 200
    assert stored.content_length == 1234
    assert stored.has_viewport is True
    assert stored.is_title_optimal is False
    assert isinstance(stored.scanned_at, datetime)

    links = test_db.get_links_for_page(page_id)
    assert [(l.url, l.is_internal) for l in links] == [
        ("https://example.com/about", True),
        ("https://other.org/", False),
    ]

    images = test_db.get_images_for_page(page_id)
    assert len(images) == 1
    assert images[0].alt_text == "Logo"


def test_pages_returned_in_insertion_order(test_db):
    session = _session()
    test_db.create_session(session)
    for path in ("/", "/b", "/a"):
        test_db.save_page(Page(url=f"https://example.com{path}", session_id=session.id))

    urls = [p.url for p in test_db.get_pages_for_session(session.id)]
    assert urls == ["https://example.com/", "https://example.com/b", "https://example.com/a"]


def test_save_page_requires_session_id(test_db):
    with pytest.raises(ValueError):
        test_db.save_page(Page(url="https://example.com/"))


def test_save_page_for_unknown_session_fails(test_db):
    """Foreign keys are enforced."""
    with pytest.raises(sqlite3.IntegrityError):
        test_db.save_page(Page(url="https://example.com/", session_id=42))


def test_get_db_client_local():
    db = get_db_client("local", db_url="sqlite:///:memory:")
    try:
        assert isinstance(db, LocalSqliteDatabase)
    finally:
        db.close()


def test_get_db_client_unknown_backend():
    with pytest.raises(ValueError):
        get_db_client("postgres")
