# src/swallows/database.py
"""Database abstraction layer for scan sessions and their pages."""

import sqlite3
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional, List
import logging

from swallows.config import settings
from swallows.models import ImageAsset, Link, Page, ScanSession, ScanStatus

logger = logging.getLogger(__name__)

CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS scan_sessions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    base_url TEXT NOT NULL,
    started_at TIMESTAMP NOT NULL,
    finished_at TIMESTAMP,
    total_pages_scanned INTEGER NOT NULL DEFAULT 0,
    user_agent TEXT NOT NULL,
    status TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS pages (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    session_id INTEGER NOT NULL REFERENCES scan_sessions(id) ON DELETE CASCADE,
    url TEXT NOT NULL,
    final_url TEXT,
    status_code INTEGER NOT NULL,
    load_time_ms REAL,
    content_length INTEGER,
    scanned_at TIMESTAMP NOT NULL,
    depth INTEGER,

    -- SEO metadata
    title TEXT,
    meta_description TEXT,
    canonical_url TEXT,
    meta_robots TEXT,
    hreflangs TEXT,
    rel_next TEXT,
    rel_prev TEXT,

    -- Structure
    h1_count INTEGER,
    h2_count INTEGER,
    h3_count INTEGER,
    h4_count INTEGER,
    script_count INTEGER,
    style_count INTEGER,
    image_count INTEGER,

    -- Feature flags
    has_viewport INTEGER,
    has_favicon INTEGER,
    has_open_graph INTEGER,
    has_twitter_card INTEGER,
    has_hsts INTEGER,
    is_redirect INTEGER,
    redirect_chain TEXT,

    -- Derived metrics
    content_hash TEXT,
    size_kb REAL,
    text_to_html_ratio REAL,
    word_count INTEGER,
    missing_alt_count INTEGER,
    internal_links_count INTEGER,
    external_links_count INTEGER,
    is_title_optimal INTEGER,
    is_description_optimal INTEGER
);

CREATE INDEX IF NOT EXISTS ix_pages_session_id ON pages (session_id);

CREATE TABLE IF NOT EXISTS links (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    page_id INTEGER NOT NULL REFERENCES pages(id) ON DELETE CASCADE,
    url TEXT NOT NULL,
    text TEXT,
    is_internal INTEGER NOT NULL
);

CREATE INDEX IF NOT EXISTS ix_links_page_id ON links (page_id);

CREATE TABLE IF NOT EXISTS image_assets (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    page_id INTEGER NOT NULL REFERENCES pages(id) ON DELETE CASCADE,
    url TEXT NOT NULL,
    alt_text TEXT,
    title TEXT,
    size_bytes INTEGER,
    content_hash TEXT
);

CREATE INDEX IF NOT EXISTS ix_image_assets_page_id ON image_assets (page_id);
"""

# Page columns persisted as-is (everything except id, links and images)
PAGE_COLUMNS = (
    "session_id", "url", "final_url", "status_code", "load_time_ms",
    "content_length", "scanned_at", "depth",
    "title", "meta_description", "canonical_url", "meta_robots", "hreflangs",
    "rel_next", "rel_prev",
    "h1_count", "h2_count", "h3_count", "h4_count",
    "script_count", "style_count", "image_count",
    "has_viewport", "has_favicon", "has_open_graph", "has_twitter_card",
    "has_hsts", "is_redirect", "redirect_chain",
    "content_hash", "size_kb", "text_to_html_ratio", "word_count",
    "missing_alt_count", "internal_links_count", "external_links_count",
    "is_title_optimal", "is_description_optimal",
)

_BOOLEAN_PAGE_COLUMNS = {
    "has_viewport", "has_favicon", "has_open_graph", "has_twitter_card",
    "has_hsts", "is_redirect", "is_title_optimal", "is_description_optimal",
}


def _to_datetime(value) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


class AbstractDatabase(ABC):
    """Abstract base class defining the storage interface used by the crawler."""

    @abstractmethod
    def connect(self) -> None:
        """Establish database connection."""
        pass

    @abstractmethod
    def close(self) -> None:
        """Close database connection."""
        pass

    @abstractmethod
    def create_schema(self) -> None:
        """Create the necessary database tables."""
        pass

    @abstractmethod
    def create_session(self, session: ScanSession) -> int:
        """Insert a new session record and assign its id.

        Args:
            session: The session to persist. Its ``id`` is set on return.

        Returns:
            The new session id.
        """
        pass

    @abstractmethod
    def update_session(self, session: ScanSession) -> None:
        """Persist finish time, status and page count of an existing session."""
        pass

    @abstractmethod
    def save_page(self, page: Page) -> int:
        """Insert a page with its links and images, assigning ids.

        Returns:
            The new page id.
        """
        pass

    @abstractmethod
    def get_session(self, session_id: int) -> Optional[ScanSession]:
        """Load a session record (without its pages)."""
        pass

    @abstractmethod
    def list_sessions(self) -> List[ScanSession]:
        """All sessions, newest first."""
        pass

    @abstractmethod
    def get_pages_for_session(self, session_id: int) -> List[Page]:
        """Pages of a session in the order they were saved."""
        pass

    @abstractmethod
    def get_links_for_page(self, page_id: int) -> List[Link]:
        """Links recorded for a page."""
        pass

    @abstractmethod
    def get_images_for_page(self, page_id: int) -> List[ImageAsset]:
        """Images recorded for a page."""
        pass


class LocalSqliteDatabase(AbstractDatabase):
    """SQLite database implementation for local storage."""

    def __init__(self, db_url: Optional[str] = None):
        """Initialize local SQLite database.

        Args:
            db_url: Database URL (sqlite:///path/to/db.db). Defaults to settings.DATABASE_URL.
        """
        self.db_url = db_url or settings.DATABASE_URL
        self.db_path = self.db_url.replace("sqlite:///", "")
        self.conn: Optional[sqlite3.Connection] = None
        self.connect()
        self.create_schema()

    def connect(self) -> None:
        """Establish SQLite connection."""
        self.conn = sqlite3.connect(self.db_path)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA foreign_keys = ON;")
        logger.debug(f"Connected to local SQLite database: {self.db_path}")

    def close(self) -> None:
        """Close SQLite connection."""
        if self.conn:
            self.conn.close()
            self.conn = None
            logger.debug("Closed local SQLite connection")

    def create_schema(self) -> None:
        """Create the tables if they don't exist."""
        with self.conn:
            self.conn.executescript(CREATE_TABLES_SQL)
        logger.debug("Schema verified/created for local SQLite")

    def create_session(self, session: ScanSession) -> int:
        """Insert a session row."""
        with self.conn:
            cursor = self.conn.execute(
                "INSERT INTO scan_sessions "
                "(base_url, started_at, finished_at, total_pages_scanned, user_agent, status) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (
                    session.base_url,
                    session.started_at.isoformat(),
                    session.finished_at.isoformat() if session.finished_at else None,
                    session.total_pages_scanned,
                    session.user_agent,
                    session.status.value,
                ),
            )
        session.id = cursor.lastrowid
        logger.debug(f"Created scan session {session.id} for {session.base_url}")
        return session.id

    def update_session(self, session: ScanSession) -> None:
        """Update finish time, count and status of a session row."""
        if session.id is None:
            raise ValueError("Cannot update a session that was never created.")

        with self.conn:
            self.conn.execute(
                "UPDATE scan_sessions SET finished_at = ?, total_pages_scanned = ?, status = ? "
                "WHERE id = ?",
                (
                    session.finished_at.isoformat() if session.finished_at else None,
                    session.total_pages_scanned,
                    session.status.value,
                    session.id,
                ),
            )
        logger.debug(f"Updated scan session {session.id}: {session.status.value}")

    def save_page(self, page: Page) -> int:
        """Insert a page and its links/images in a single transaction."""
        if page.session_id is None:
            raise ValueError("The page's 'session_id' is required.")

        values = []
        for column in PAGE_COLUMNS:
            value = getattr(page, column)
            if isinstance(value, datetime):
                value = value.isoformat()
            elif isinstance(value, bool):
                value = int(value)
            values.append(value)

        columns = ', '.join(PAGE_COLUMNS)
        placeholders = ', '.join('?' for _ in PAGE_COLUMNS)

        with self.conn:
            cursor = self.conn.execute(
                f"INSERT INTO pages ({columns}) VALUES ({placeholders})", values
            )
            page.id = cursor.lastrowid

            for link in page.links:
                link.page_id = page.id
                cursor = self.conn.execute(
                    "INSERT INTO links (page_id, url, text, is_internal) VALUES (?, ?, ?, ?)",
                    (page.id, link.url, link.text, int(link.is_internal)),
                )
                link.id = cursor.lastrowid

            for image in page.images:
                image.page_id = page.id
                cursor = self.conn.execute(
                    "INSERT INTO image_assets "
                    "(page_id, url, alt_text, title, size_bytes, content_hash) "
                    "VALUES (?, ?, ?, ?, ?, ?)",
                    (page.id, image.url, image.alt_text, image.title,
                     image.size_bytes, image.content_hash),
                )
                image.id = cursor.lastrowid

        logger.debug(f"Saved page {page.id}: {page.url}")
        return page.id

    def get_session(self, session_id: int) -> Optional[ScanSession]:
        """Load a session row."""
        cursor = self.conn.cursor()
        cursor.execute("SELECT * FROM scan_sessions WHERE id = ?", (session_id,))
        row = cursor.fetchone()
        return self._row_to_session(row) if row else None

    def list_sessions(self) -> List[ScanSession]:
        """All sessions, newest first."""
        cursor = self.conn.cursor()
        cursor.execute("SELECT * FROM scan_sessions ORDER BY started_at DESC, id DESC")
        return [self._row_to_session(row) for row in cursor.fetchall()]

    def get_pages_for_session(self, session_id: int) -> List[Page]:
        """Pages of a session ordered by insertion."""
        cursor = self.conn.cursor()
        cursor.execute("SELECT * FROM pages WHERE session_id = ? ORDER BY id ASC", (session_id,))
        return [self._row_to_page(row) for row in cursor.fetchall()]

    def get_links_for_page(self, page_id: int) -> List[Link]:
        """Links recorded for a page."""
        cursor = self.conn.cursor()
        cursor.execute("SELECT * FROM links WHERE page_id = ? ORDER BY id ASC", (page_id,))
        return [
            Link(
                id=row['id'],
                page_id=row['page_id'],
                url=row['url'],
                text=row['text'] or "",
                is_internal=bool(row['is_internal']),
            )
            for row in cursor.fetchall()
        ]

    def get_images_for_page(self, page_id: int) -> List[ImageAsset]:
        """Images recorded for a page."""
        cursor = self.conn.cursor()
        cursor.execute("SELECT * FROM image_assets WHERE page_id = ? ORDER BY id ASC", (page_id,))
        return [
            ImageAsset(
                id=row['id'],
                page_id=row['page_id'],
                url=row['url'],
                alt_text=row['alt_text'],
                title=row['title'],
                size_bytes=row['size_bytes'],
                content_hash=row['content_hash'],
            )
            for row in cursor.fetchall()
        ]

    def _row_to_session(self, row: sqlite3.Row) -> ScanSession:
        return ScanSession(
            id=row['id'],
            base_url=row['base_url'],
            user_agent=row['user_agent'],
            started_at=_to_datetime(row['started_at']),
            finished_at=_to_datetime(row['finished_at']),
            total_pages_scanned=row['total_pages_scanned'],
            status=ScanStatus(row['status']),
        )

    def _row_to_page(self, row: sqlite3.Row) -> Page:
        data = {column: row[column] for column in PAGE_COLUMNS}
        for column in _BOOLEAN_PAGE_COLUMNS:
            data[column] = bool(data[column])
        data['scanned_at'] = _to_datetime(data['scanned_at'])
        return Page(id=row['id'], **data)


def get_db_client(
    backend: Optional[str] = None,
    **kwargs,
) -> AbstractDatabase:
    """Factory function to create the appropriate database client.

    Args:
        backend: Database backend ('local'). Defaults to settings.DB_BACKEND.
        **kwargs: Additional arguments passed to the database constructor.

    Returns:
        An instance of AbstractDatabase.

    Raises:
        ValueError: If an unknown backend is specified.
    """
    backend = backend or settings.DB_BACKEND

    if backend == "local":
        logger.info("Using local SQLite database backend")
        return LocalSqliteDatabase(**kwargs)
    else:
        raise ValueError(
            f"Unknown database backend: '{backend}'. "
            "Supported backends: 'local'"
        )
