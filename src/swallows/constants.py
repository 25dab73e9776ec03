# src/swallows/constants.py
"""Centralized constants for the crawl engine.

This module contains magic numbers and default values that are used across
multiple modules. For user-configurable values, see config.py and CrawlConfig.
"""

# =============================================================================
# Crawler Defaults
# =============================================================================

# User agent declared to servers and matched against robots.txt groups
DEFAULT_USER_AGENT = "SwallowsBot/1.0"

# Default maximum pages per scan
DEFAULT_MAX_PAGES_TO_CRAWL = 1000

# Default maximum crawl depth (seed page is depth 0)
DEFAULT_MAX_DEPTH = 5

# Default number of fetches allowed in flight at once
DEFAULT_CONCURRENT_REQUESTS = 1

# Default request timeout in seconds
DEFAULT_REQUEST_TIMEOUT_SECONDS = 30

# Default delay between dispatched requests (seconds)
DEFAULT_REQUEST_DELAY_SECONDS = 0.0

# Interval the scheduler idles for while paused (seconds)
PAUSE_POLL_INTERVAL_SECONDS = 1.0

# Redirect hops followed by the fetcher before giving up
MAX_REDIRECT_HOPS = 10

# Timeout for the robots.txt request (seconds)
ROBOTS_TXT_TIMEOUT_SECONDS = 10.0

# Path extensions never enqueued (binary or static assets)
SKIP_EXTENSIONS = frozenset((
    '.pdf', '.jpg', '.jpeg', '.png', '.gif', '.svg', '.webp',
    '.zip', '.tar', '.gz', '.mp4', '.mp3', '.avi', '.mov',
    '.doc', '.docx', '.xls', '.xlsx', '.ppt', '.pptx',
    '.css', '.js', '.xml', '.json', '.ico', '.woff', '.woff2', '.ttf',
))

# Only these schemes are enqueued
CRAWLABLE_SCHEMES = ("http", "https")


# =============================================================================
# SEO Validation Constants
# =============================================================================

# Inclusive bounds for an optimal <title> length (characters)
TITLE_OPTIMAL_MIN = 10
TITLE_OPTIMAL_MAX = 60

# Inclusive bounds for an optimal meta description length (characters)
DESCRIPTION_OPTIMAL_MIN = 50
DESCRIPTION_OPTIMAL_MAX = 160


# =============================================================================
# Content Extraction Constants
# =============================================================================

# Tags whose text never counts as visible body text
NON_VISIBLE_TAGS = frozenset(("script", "style", "noscript", "template"))

# Separator used when joining hreflang values
HREFLANG_SEPARATOR = ", "

# Separator used in the two-hop redirect chain string
REDIRECT_CHAIN_SEPARATOR = " -> "

# Bytes per kilobyte for size_kb
BYTES_PER_KB = 1024.0


# =============================================================================
# Logging
# =============================================================================

DEFAULT_LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Third-party loggers held at WARNING unless DEBUG logging is requested
NOISY_LOGGERS = ("httpx", "httpcore", "hpack")
