"""Site crawler with breadth-first search, robots.txt politeness and pause/cancel control."""

import asyncio
import logging
import threading
from collections import deque
from typing import Callable, Deque, Dict, Optional, Set, Tuple
from urllib.parse import urlsplit

import httpx

from swallows.comparison import find_duplicate_content
from swallows.config import CrawlConfig
from swallows.constants import (
    CRAWLABLE_SCHEMES,
    ROBOTS_TXT_TIMEOUT_SECONDS,
    SKIP_EXTENSIONS,
)
from swallows.crawler import PageFetcher
from swallows.database import AbstractDatabase
from swallows.models import Page, ScanProgress, ScanSession, ScanState, ScanStatus
from swallows.robots import RobotsTxtParser
from swallows.session import SessionLifecycle


def normalize_url(url: str) -> str:
    """Normalize URL by removing fragments and trailing slashes.

    Scheme and host are lower-cased and an empty path becomes ``/``. Path
    parameters (``;v=2``) stay part of the path.

    Args:
        url: URL to normalize

    Returns:
        Normalized URL
    """
    parsed = urlsplit(url)
    path = parsed.path or "/"
    normalized = f"{parsed.scheme.lower()}://{parsed.netloc.lower()}{path}"
    if parsed.query:
        normalized += f"?{parsed.query}"
    # Remove trailing slash (except for root)
    if len(path) > 1 and path.endswith('/') and not parsed.query:
        normalized = normalized[:-1]
    return normalized


def should_skip_url(path: str) -> bool:
    """Check if a URL path points at a binary or static asset."""
    path_lower = path.split(";", 1)[0].lower()
    return any(path_lower.endswith(ext) for ext in SKIP_EXTENSIONS)


class CrawlControl:
    """Pause and cancel flags shared between a running scan and its controller.

    Safe to flip from other threads and from signal handlers.
    """

    def __init__(self):
        self._paused = threading.Event()
        self._cancelled = threading.Event()

    @property
    def is_paused(self) -> bool:
        return self._paused.is_set()

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled.is_set()

    def pause(self) -> None:
        self._paused.set()

    def resume(self) -> None:
        self._paused.clear()

    def toggle_pause(self) -> bool:
        """Flip the pause flag and return the new paused state."""
        if self.is_paused:
            self.resume()
        else:
            self.pause()
        return self.is_paused

    def cancel(self) -> None:
        self._cancelled.set()


class SiteCrawler:
    """Crawls a single site using breadth-first search (BFS).

    The scheduler owns the frontier and the visited set. Fetches run as
    asyncio tasks (at most ``concurrent_requests`` at a time) and only return
    Page records; the loop folds every result in, persists it, reports
    progress and decides what to enqueue next.

    State machine: Starting -> Running <-> Paused -> Completed | Stopped.
    """

    def __init__(
        self,
        storage: AbstractDatabase,
        config: Optional[CrawlConfig] = None,
        fetcher: Optional[PageFetcher] = None,
        robots: Optional[RobotsTxtParser] = None,
        control: Optional[CrawlControl] = None,
        on_progress: Optional[Callable[[ScanProgress], None]] = None,
        on_session_started: Optional[Callable[[ScanSession], None]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """Initialize the site crawler.

        Args:
            storage: Storage collaborator receiving sessions and pages
            config: Crawl configuration (defaults to CrawlConfig())
            fetcher: Page fetcher (built from config when omitted)
            robots: robots.txt policy (built from config when omitted)
            control: Pause/cancel flags (a fresh CrawlControl when omitted)
            on_progress: Called with a ScanProgress after every completed fetch
            on_session_started: Called once with the new session before the first fetch
            transport: Optional httpx transport for the default fetcher and robots parser
            logger: Logger to report to (defaults to the module logger)
        """
        self.config = config or CrawlConfig()
        self.config.validate()
        self.storage = storage
        self.logger = logger or logging.getLogger(__name__)

        self.fetcher = fetcher or PageFetcher(
            user_agent=self.config.user_agent,
            timeout=self.config.timeout,
            proxy_url=self.config.proxy_url,
            transport=transport,
            logger=self.logger,
        )
        self.robots = robots or RobotsTxtParser(
            timeout=min(self.config.timeout, ROBOTS_TXT_TIMEOUT_SECONDS),
            transport=transport,
            logger=self.logger,
        )
        self.control = control or CrawlControl()
        self.on_progress = on_progress
        self.lifecycle = SessionLifecycle(storage, on_session_started, logger=self.logger)

        self.state = ScanState.STARTING
        self.session: Optional[ScanSession] = None
        self.queue: Deque[Tuple[str, int]] = deque()
        self.seen_urls: Set[str] = set()
        self.visited_urls: Set[str] = set()
        self.pages_scanned = 0
        self._dispatched = 0
        self._base_host: Optional[str] = None

    def crawl_site(self, start_url: str) -> ScanSession:
        """Crawl a site synchronously.

        Args:
            start_url: The starting URL to crawl from

        Returns:
            The finalized ScanSession with its pages
        """
        return asyncio.run(self.scan(start_url))

    async def scan(self, start_url: str) -> ScanSession:
        """Crawl a site starting from a URL using BFS.

        Args:
            start_url: The starting URL to crawl from

        Returns:
            The finalized ScanSession with its pages in the order they were fetched

        Raises:
            ValueError: If start_url is not an absolute http(s) URL
        """
        parsed = urlsplit(start_url)
        if parsed.scheme.lower() not in CRAWLABLE_SCHEMES or not parsed.hostname:
            raise ValueError(f"Start URL must be an absolute http(s) URL, got {start_url!r}")

        start_url = normalize_url(start_url)
        self._reset()
        self._base_host = parsed.hostname

        self.logger.info(
            f"Starting recursive scan: {start_url} | Max pages: {self.config.max_pages}, "
            f"Max depth: {self.config.max_depth if self.config.max_depth is not None else 'unlimited'}, "
            f"Concurrency: {self.config.concurrent_requests}"
        )

        session = self.lifecycle.open(start_url, self.config.user_agent)
        self.session = session
        self.state = ScanState.RUNNING

        try:
            await self.robots.load(start_url, self.config.user_agent)

            self.seen_urls.add(start_url)
            self.queue.append((start_url, 0))

            final_state = await self._execute_crawl_loop(session)
        except BaseException:
            self.state = ScanState.STOPPED
            self._abort(session)
            raise

        self.state = final_state
        status = ScanStatus.COMPLETED if final_state is ScanState.COMPLETED else ScanStatus.STOPPED
        self.lifecycle.finalize(session, status, self.pages_scanned)

        self.logger.info(f"{'=' * 60}")
        self.logger.info(
            f"Scan {status.value.lower()}! Processed {self.pages_scanned} pages, "
            f"{len(self.queue)} URLs left in queue"
        )
        self.logger.info(f"{'=' * 60}")

        return session

    def _reset(self) -> None:
        self.state = ScanState.STARTING
        self.session = None
        self.queue = deque()
        self.seen_urls = set()
        self.visited_urls = set()
        self.pages_scanned = 0
        self._dispatched = 0

    def _abort(self, session: ScanSession) -> None:
        """Mark the session Stopped after a fatal error, without masking the error."""
        if session.is_finished:
            return
        try:
            self.lifecycle.finalize(session, ScanStatus.STOPPED, self.pages_scanned)
        except Exception:
            self.logger.exception(f"Could not finalize session {session.id} after abort")

    async def _execute_crawl_loop(self, session: ScanSession) -> ScanState:
        """Run the frontier loop until it is exhausted, capped or cancelled.

        Returns:
            ScanState.COMPLETED or ScanState.STOPPED
        """
        in_flight: Dict[asyncio.Task, Tuple[int, str]] = {}
        cancelled = False
        poll_interval = self.config.pause_poll_interval

        try:
            while True:
                # Cancellation takes precedence over pause
                if self.control.is_cancelled:
                    cancelled = True
                    self.logger.info("Scan cancelled, no further URLs will be fetched")
                    break

                if self.control.is_paused:
                    if self.state is not ScanState.PAUSED:
                        self.state = ScanState.PAUSED
                        self.logger.info("Scan paused")
                    if in_flight:
                        await self._collect(session, in_flight, timeout=poll_interval)
                    else:
                        await asyncio.sleep(poll_interval)
                    continue

                if self.state is ScanState.PAUSED:
                    self.state = ScanState.RUNNING
                    self.logger.info("Scan resumed")

                await self._dispatch(session, in_flight)

                if not in_flight:
                    # Frontier exhausted or page cap reached
                    break

                await self._collect(session, in_flight, timeout=poll_interval)

            if in_flight:
                self.logger.info(f"Waiting for {len(in_flight)} in-flight fetches to finish")
            while in_flight:
                await self._collect(session, in_flight, timeout=None)

        finally:
            if in_flight:
                for task in in_flight:
                    task.cancel()
                await asyncio.gather(*in_flight, return_exceptions=True)

        return ScanState.STOPPED if cancelled else ScanState.COMPLETED

    async def _dispatch(
        self, session: ScanSession, in_flight: Dict[asyncio.Task, Tuple[int, str]]
    ) -> None:
        """Start fetches from the frontier until the pool or the page cap is full."""
        while (
            self.queue
            and len(in_flight) < self.config.concurrent_requests
            and self._dispatched < self.config.max_pages
        ):
            url, depth = self.queue.popleft()

            if url in self.visited_urls:
                continue

            if not self.robots.is_url_allowed(url, self.config.user_agent):
                self.logger.info(f"Skipping disallowed URL: {url}")
                self.visited_urls.add(url)
                continue

            if self.config.request_delay > 0 and self._dispatched > 0:
                await asyncio.sleep(self.config.request_delay)
                if self.control.is_cancelled or self.control.is_paused:
                    self.queue.appendleft((url, depth))
                    return

            self.visited_urls.add(url)
            self._dispatched += 1
            self.logger.info(
                f"[L{depth}] Crawling ({self._dispatched}/{self.config.max_pages}): {url}"
            )

            task = asyncio.create_task(
                self.fetcher.fetch(url, session.id, depth=depth, base_host=self._base_host)
            )
            in_flight[task] = (self._dispatched, url)

    async def _collect(
        self,
        session: ScanSession,
        in_flight: Dict[asyncio.Task, Tuple[int, str]],
        timeout: Optional[float],
    ) -> None:
        """Fold in fetches that complete within the timeout, in dispatch order."""
        done, _ = await asyncio.wait(
            set(in_flight), timeout=timeout, return_when=asyncio.FIRST_COMPLETED
        )
        for task in sorted(done, key=lambda t: in_flight[t][0]):
            _, url = in_flight.pop(task)
            self._record_page(session, task.result(), url)

    def _record_page(self, session: ScanSession, page: Page, url: str) -> None:
        """Persist a fetched page, report progress and expand the frontier."""
        if not self.config.save_images:
            page.images = []

        self.storage.save_page(page)
        session.pages.append(page)
        self.pages_scanned += 1

        if self.on_progress:
            self.on_progress(ScanProgress(
                scanned_count=self.pages_scanned,
                queue_count=len(self.queue),
                total_known_urls=len(self.visited_urls) + len(self.queue),
                current_url=url,
                latest_page=page,
            ))

        if page.status_code == 200 and page.content_length > 0 and page.internal_links_count > 0:
            self.logger.info(f"Found {page.internal_links_count} internal links on {url}")
            queued = self._enqueue_links(page)
            self.logger.info(f"Queued {queued} new links. Queue size: {len(self.queue)}")
        else:
            self.logger.info(
                f"Page {url} - Status: {page.status_code}, "
                f"ContentLength: {page.content_length}, "
                f"InternalLinks: {page.internal_links_count}"
            )

    def _enqueue_links(self, page: Page) -> int:
        """Queue the page's unseen internal links one level deeper.

        Returns:
            Number of URLs queued
        """
        next_depth = page.depth + 1
        if self.config.max_depth is not None and next_depth > self.config.max_depth:
            self.logger.debug(f"Max depth {self.config.max_depth} reached at {page.url}")
            return 0

        queued = 0
        for link in page.internal_links():
            if self._enqueue(link.url, next_depth):
                queued += 1
        return queued

    def _enqueue(self, url: str, depth: int) -> bool:
        try:
            normalized = normalize_url(url)
            parsed = urlsplit(normalized)
        except ValueError:
            return False

        if parsed.scheme not in CRAWLABLE_SCHEMES:
            return False
        if should_skip_url(parsed.path):
            return False
        if normalized in self.seen_urls:
            return False

        self.seen_urls.add(normalized)
        self.queue.append((normalized, depth))
        return True

    def get_crawl_summary(self) -> dict:
        """Get a summary of the crawl results.

        Returns:
            Dictionary with crawl statistics
        """
        if not self.session or not self.session.pages:
            return {}

        pages = self.session.pages
        fetched = [page for page in pages if not page.is_failure]

        return {
            'session_id': self.session.id,
            'status': self.session.status.value,
            'total_pages': len(pages),
            'failed_pages': len(pages) - len(fetched),
            'redirected_pages': sum(1 for page in pages if page.is_redirect),
            'duplicate_content_groups': len(find_duplicate_content(pages)),
            'total_words': sum(page.word_count for page in pages),
            'avg_load_time_ms': (
                sum(page.load_time_ms for page in fetched) / len(fetched) if fetched else 0.0
            ),
            'urls_crawled': [page.url for page in pages],
        }
