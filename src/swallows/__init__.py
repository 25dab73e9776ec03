"""Swallows - polite breadth-first site crawler for technical SEO audits."""

from swallows.config import CrawlConfig
from swallows.crawler import PageFetcher
from swallows.models import (
    ImageAsset,
    Link,
    Page,
    ScanProgress,
    ScanSession,
    ScanState,
    ScanStatus,
)
from swallows.robots import RobotsTxtParser
from swallows.site_crawler import CrawlControl, SiteCrawler

__version__ = "0.1.0"

__all__ = [
    "CrawlConfig",
    "CrawlControl",
    "ImageAsset",
    "Link",
    "Page",
    "PageFetcher",
    "RobotsTxtParser",
    "ScanProgress",
    "ScanSession",
    "ScanState",
    "ScanStatus",
    "SiteCrawler",
]
