"""Data models for scan sessions and crawled pages."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class ScanStatus(str, Enum):
    """Persisted status of a scan session."""

    RUNNING = "Running"
    COMPLETED = "Completed"
    STOPPED = "Stopped"

    @property
    def is_terminal(self) -> bool:
        return self is not ScanStatus.RUNNING


class ScanState(str, Enum):
    """Scheduler state machine: Starting -> Running <-> Paused -> Completed | Stopped."""

    STARTING = "Starting"
    RUNNING = "Running"
    PAUSED = "Paused"
    COMPLETED = "Completed"
    STOPPED = "Stopped"


@dataclass
class Link:
    """An anchor discovered on a page."""

    url: str
    text: str = ""
    is_internal: bool = False
    page_id: Optional[int] = None
    id: Optional[int] = None


@dataclass
class ImageAsset:
    """An image referenced by a page."""

    url: str
    alt_text: Optional[str] = None
    title: Optional[str] = None
    size_bytes: Optional[int] = None
    content_hash: Optional[str] = None
    page_id: Optional[int] = None
    id: Optional[int] = None


@dataclass
class Page:
    """One fetched resource and the signals extracted from it."""

    url: str
    session_id: Optional[int] = None
    status_code: int = 0  # 0 = fetch failure
    final_url: Optional[str] = None
    content_length: int = 0  # bytes
    load_time_ms: float = 0.0
    scanned_at: datetime = field(default_factory=datetime.now)
    depth: int = 0  # seed = 0

    # SEO metadata
    title: Optional[str] = None
    meta_description: Optional[str] = None
    canonical_url: Optional[str] = None
    meta_robots: Optional[str] = None
    hreflangs: Optional[str] = None  # comma-joined
    rel_next: Optional[str] = None
    rel_prev: Optional[str] = None

    # Structure
    h1_count: int = 0
    h2_count: int = 0
    h3_count: int = 0
    h4_count: int = 0
    script_count: int = 0
    style_count: int = 0
    image_count: int = 0

    # Feature flags
    has_viewport: bool = False
    has_favicon: bool = False
    has_open_graph: bool = False
    has_twitter_card: bool = False
    has_hsts: bool = False
    is_redirect: bool = False
    redirect_chain: Optional[str] = None  # "requested -> final"

    # Derived metrics
    content_hash: Optional[str] = None  # MD5 of the raw body
    size_kb: float = 0.0
    text_to_html_ratio: float = 0.0
    word_count: int = 0
    missing_alt_count: int = 0
    internal_links_count: int = 0
    external_links_count: int = 0
    is_title_optimal: bool = False  # 10-60 chars
    is_description_optimal: bool = False  # 50-160 chars

    links: list[Link] = field(default_factory=list)
    images: list[ImageAsset] = field(default_factory=list)
    id: Optional[int] = None

    @classmethod
    def failed(cls, url: str, session_id: Optional[int], depth: int = 0) -> "Page":
        """Minimal stub recorded when a fetch fails."""
        return cls(url=url, session_id=session_id, status_code=0, depth=depth)

    @property
    def is_failure(self) -> bool:
        return self.status_code == 0

    def internal_links(self) -> list[Link]:
        return [link for link in self.links if link.is_internal]


@dataclass
class ScanSession:
    """One crawl run."""

    base_url: str
    user_agent: str
    started_at: datetime = field(default_factory=datetime.now)
    finished_at: Optional[datetime] = None
    total_pages_scanned: int = 0
    status: ScanStatus = ScanStatus.RUNNING
    pages: list[Page] = field(default_factory=list)
    id: Optional[int] = None

    @property
    def is_finished(self) -> bool:
        return self.status.is_terminal


@dataclass
class ScanProgress:
    """Snapshot reported to the progress consumer after every fetch."""

    scanned_count: int
    queue_count: int
    total_known_urls: int
    current_url: str
    latest_page: Optional[Page] = None


@dataclass
class PageDiff:
    """A single difference between two scans of the same site."""

    url: str
    change_type: str  # New, Removed, Status, Title, Meta
    old_status_code: Optional[int] = None
    new_status_code: Optional[int] = None
    old_value: Optional[str] = None
    new_value: Optional[str] = None
