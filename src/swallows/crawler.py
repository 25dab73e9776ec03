"""Single-page fetcher: downloads one URL and extracts its SEO signals."""

import hashlib
import logging
import re
import time
from datetime import datetime
from typing import Mapping, Optional, Tuple
from urllib.parse import urljoin, urlparse

import httpx
from bs4 import BeautifulSoup, Comment

from swallows.constants import (
    BYTES_PER_KB,
    DEFAULT_REQUEST_TIMEOUT_SECONDS,
    DEFAULT_USER_AGENT,
    DESCRIPTION_OPTIMAL_MAX,
    DESCRIPTION_OPTIMAL_MIN,
    HREFLANG_SEPARATOR,
    MAX_REDIRECT_HOPS,
    NON_VISIBLE_TAGS,
    REDIRECT_CHAIN_SEPARATOR,
    TITLE_OPTIMAL_MAX,
    TITLE_OPTIMAL_MIN,
)
from swallows.models import ImageAsset, Link, Page

_WHITESPACE_RE = re.compile(r"\s+")
_NON_VISIBLE = sorted(NON_VISIBLE_TAGS)


def strip_www(host: Optional[str]) -> str:
    """Lower-case a hostname and drop a leading ``www.``."""
    host = (host or "").lower()
    return host[4:] if host.startswith("www.") else host


def is_same_site(host_a: Optional[str], host_b: Optional[str]) -> bool:
    """Compare two hostnames ignoring case and a leading ``www.``."""
    return strip_www(host_a) == strip_www(host_b)


def _attr_equals(value: str):
    """Case-insensitive attribute value matcher for BeautifulSoup lookups."""
    return lambda v: v is not None and v.strip().lower() == value


class PageFetcher:
    """Fetches single pages and turns them into Page records.

    ``fetch`` never raises: any failure produces a status-0 stub page so the
    scheduler always has something to record.
    """

    def __init__(
        self,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout: float = DEFAULT_REQUEST_TIMEOUT_SECONDS,
        proxy_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """Initialize the fetcher.

        Args:
            user_agent: User agent string sent with every request
            timeout: Request timeout in seconds
            proxy_url: Optional HTTP(S) proxy URL
            transport: Optional httpx transport (used by tests to serve fixtures)
            logger: Logger to report to (defaults to the module logger)
        """
        self.user_agent = user_agent
        self.timeout = timeout
        self.proxy_url = proxy_url
        self._transport = transport
        self.logger = logger or logging.getLogger(__name__)

    def _client(self) -> httpx.AsyncClient:
        options = {
            "timeout": self.timeout,
            "follow_redirects": False,
            "headers": {
                "User-Agent": self.user_agent,
                "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
                "Accept-Language": "en-US,en;q=0.9",
            },
        }
        if self._transport is not None:
            options["transport"] = self._transport
        elif self.proxy_url:
            options["proxy"] = self.proxy_url
        return httpx.AsyncClient(**options)

    async def fetch(
        self,
        url: str,
        session_id: Optional[int],
        depth: int = 0,
        base_host: Optional[str] = None,
    ) -> Page:
        """Fetch one URL and extract its page record.

        Redirects are not followed by the transport; each hop is requested
        explicitly so the final URL is known.

        Args:
            url: The URL to fetch
            session_id: Session the page belongs to
            depth: Crawl depth of the URL (seed = 0)
            base_host: Host used for internal/external link classification
                (defaults to the page's own host)

        Returns:
            Page record (status 0 on failure)
        """
        try:
            self.logger.debug(f"Fetching: {url}")
            async with self._client() as client:
                start_time = time.perf_counter()
                final_url, response = await self._get_following_redirects(client, url)
                body = response.content
                load_time_ms = (time.perf_counter() - start_time) * 1000

            return self.extract_page(
                url=url,
                final_url=final_url,
                status_code=response.status_code,
                headers=response.headers,
                body=body,
                html=response.text,
                load_time_ms=load_time_ms,
                session_id=session_id,
                depth=depth,
                base_host=base_host,
            )

        except Exception as e:
            self.logger.error(f"Error crawling {url}: {e}")
            return Page.failed(url, session_id, depth)

    async def _get_following_redirects(
        self, client: httpx.AsyncClient, url: str
    ) -> Tuple[str, httpx.Response]:
        current_url = url
        response = await client.get(current_url)
        hops = 0

        while response.is_redirect and hops < MAX_REDIRECT_HOPS:
            current_url = urljoin(current_url, response.headers["location"])
            self.logger.debug(f"  Redirect {hops + 1}: {current_url}")
            response = await client.get(current_url)
            hops += 1

        return current_url, response

    def extract_page(
        self,
        url: str,
        final_url: str,
        status_code: int,
        headers: Mapping[str, str],
        body: bytes,
        html: str,
        load_time_ms: float = 0.0,
        session_id: Optional[int] = None,
        depth: int = 0,
        base_host: Optional[str] = None,
    ) -> Page:
        """Build a Page record purely from a response.

        Args:
            url: URL as requested
            final_url: URL after redirects
            status_code: HTTP status code
            headers: Response headers (case-insensitive mapping)
            body: Raw response body
            html: Decoded response body
            load_time_ms: Fetch latency in milliseconds
            session_id: Owning session id
            depth: Crawl depth
            base_host: Host for internal link classification

        Returns:
            Populated Page
        """
        soup = BeautifulSoup(html, "lxml")
        headers = httpx.Headers(headers)
        byte_length = len(body)

        page = Page(
            url=url,
            final_url=final_url,
            session_id=session_id,
            status_code=status_code,
            content_length=byte_length,
            load_time_ms=load_time_ms,
            scanned_at=datetime.now(),
            depth=depth,
        )

        # Title
        title_tag = soup.find("title")
        page.title = (title_tag.get_text(strip=True) or None) if title_tag else None

        # Meta tags
        page.meta_description = self._meta_content(soup, "name", "description")
        page.meta_robots = self._meta_content(soup, "name", "robots")
        page.has_viewport = soup.find("meta", attrs={"name": _attr_equals("viewport")}) is not None
        page.has_open_graph = soup.find(
            "meta", attrs={"property": lambda v: v is not None and v.lower().startswith("og:")}
        ) is not None
        page.has_twitter_card = soup.find(
            "meta", attrs={"name": _attr_equals("twitter:card")}
        ) is not None

        # Link elements
        page.canonical_url = self._link_href(soup, "canonical")
        page.rel_next = self._link_href(soup, "next")
        page.rel_prev = self._link_href(soup, "prev")
        page.has_favicon = soup.find("link", rel="icon") is not None

        hreflangs = [
            tag.get("hreflang", "").strip()
            for tag in soup.find_all("link", rel="alternate", hreflang=True)
        ]
        hreflangs = [h for h in hreflangs if h]
        if hreflangs:
            page.hreflangs = HREFLANG_SEPARATOR.join(hreflangs)

        # Heading, script and style counts
        page.h1_count = len(soup.find_all("h1"))
        page.h2_count = len(soup.find_all("h2"))
        page.h3_count = len(soup.find_all("h3"))
        page.h4_count = len(soup.find_all("h4"))
        page.script_count = len(soup.find_all("script"))
        page.style_count = len(soup.find_all("style"))

        # SEO validations
        if page.title:
            page.is_title_optimal = TITLE_OPTIMAL_MIN <= len(page.title) <= TITLE_OPTIMAL_MAX
        if page.meta_description:
            page.is_description_optimal = (
                DESCRIPTION_OPTIMAL_MIN <= len(page.meta_description) <= DESCRIPTION_OPTIMAL_MAX
            )

        # Size, text ratio and word count
        page.size_kb = byte_length / BYTES_PER_KB
        visible_text = self._visible_text(soup)
        page.word_count = len([word for word in visible_text.split(" ") if word])
        if byte_length > 0:
            page.text_to_html_ratio = len(visible_text) / byte_length

        # Redirects
        if final_url != url:
            page.is_redirect = True
            page.redirect_chain = f"{url}{REDIRECT_CHAIN_SEPARATOR}{final_url}"

        page.has_hsts = "strict-transport-security" in headers

        # Content fingerprint for duplicate detection
        page.content_hash = hashlib.md5(body).hexdigest()

        reference_host = base_host or urlparse(url).hostname
        self._extract_links(page, soup, final_url, reference_host)
        self._extract_images(page, soup, final_url)

        return page

    def _meta_content(self, soup: BeautifulSoup, attr: str, value: str) -> Optional[str]:
        tag = soup.find("meta", attrs={attr: _attr_equals(value)})
        return tag.get("content") if tag else None

    def _link_href(self, soup: BeautifulSoup, rel: str) -> Optional[str]:
        tag = soup.find("link", rel=rel)
        return tag.get("href") if tag else None

    def _visible_text(self, soup: BeautifulSoup) -> str:
        """Body text with runs of whitespace collapsed to single spaces."""
        body = soup.body
        if body is None:
            return ""

        parts = []
        for text in body.find_all(string=True):
            if isinstance(text, Comment):
                continue
            if text.find_parent(_NON_VISIBLE) is not None:
                continue
            parts.append(str(text))

        return _WHITESPACE_RE.sub(" ", " ".join(parts)).strip()

    def _extract_links(
        self, page: Page, soup: BeautifulSoup, page_url: str, reference_host: Optional[str]
    ) -> None:
        for anchor in soup.find_all("a", href=True):
            href = anchor["href"].strip()
            if not href:
                continue

            try:
                absolute_url = urljoin(page_url, href)
                host = urlparse(absolute_url).hostname
            except ValueError:
                # Malformed href (e.g. broken IPv6 literal)
                self.logger.debug(f"Skipping malformed href on {page_url}: {href!r}")
                continue

            is_internal = host is not None and is_same_site(host, reference_host)
            page.links.append(Link(
                url=absolute_url,
                text=anchor.get_text(" ", strip=True),
                is_internal=is_internal,
            ))

            if is_internal:
                page.internal_links_count += 1
            else:
                page.external_links_count += 1

    def _extract_images(self, page: Page, soup: BeautifulSoup, page_url: str) -> None:
        missing_alt = 0

        for img in soup.find_all("img", src=True):
            src = img["src"].strip()
            if not src:
                continue

            alt = img.get("alt", "")
            if not alt.strip():
                missing_alt += 1

            try:
                absolute_url = urljoin(page_url, src)
            except ValueError:
                self.logger.debug(f"Skipping malformed img src on {page_url}: {src!r}")
                continue

            page.images.append(ImageAsset(
                url=absolute_url,
                alt_text=alt,
                title=img.get("title", ""),
            ))

        page.image_count = len(page.images)
        page.missing_alt_count = missing_alt
