"""Compare two scan sessions and find duplicate content within one."""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from swallows.database import AbstractDatabase
from swallows.models import Page, PageDiff


@dataclass
class ComparisonResult:
    """Differences between a baseline scan and a later scan."""

    new_pages: List[PageDiff] = field(default_factory=list)
    removed_pages: List[PageDiff] = field(default_factory=list)
    status_changes: List[PageDiff] = field(default_factory=list)
    meta_changes: List[PageDiff] = field(default_factory=list)

    @property
    def total_changes(self) -> int:
        return (
            len(self.new_pages)
            + len(self.removed_pages)
            + len(self.status_changes)
            + len(self.meta_changes)
        )


def find_duplicate_content(pages: Iterable[Page]) -> Dict[str, List[str]]:
    """Group URLs of successfully fetched pages by content hash.

    Args:
        pages: Page records from one session

    Returns:
        Dict mapping content hash to the URLs sharing it (only groups of two or more)
    """
    groups: Dict[str, List[str]] = defaultdict(list)
    for page in pages:
        if page.status_code != 200 or page.content_length <= 0 or not page.content_hash:
            continue
        groups[page.content_hash].append(page.url)

    return {content_hash: urls for content_hash, urls in groups.items() if len(urls) > 1}


class ComparisonService:
    """Compares the stored pages of two sessions, keyed by URL."""

    def __init__(self, storage: AbstractDatabase, logger: Optional[logging.Logger] = None):
        self.storage = storage
        self.logger = logger or logging.getLogger(__name__)

    def compare_sessions(self, baseline_id: int, comparison_id: int) -> ComparisonResult:
        """Compare a baseline session against a later one.

        Args:
            baseline_id: Id of the earlier session
            comparison_id: Id of the later session

        Returns:
            ComparisonResult with new, removed, status and meta changes

        Raises:
            ValueError: If either session does not exist
        """
        for session_id in (baseline_id, comparison_id):
            if self.storage.get_session(session_id) is None:
                raise ValueError(f"Session {session_id} not found")

        baseline = {page.url: page for page in self.storage.get_pages_for_session(baseline_id)}
        current = {page.url: page for page in self.storage.get_pages_for_session(comparison_id)}

        result = ComparisonResult()

        for url, page in current.items():
            old = baseline.get(url)
            if old is None:
                result.new_pages.append(PageDiff(
                    url=url, change_type="New", new_status_code=page.status_code,
                ))
                continue

            if old.status_code != page.status_code:
                result.status_changes.append(PageDiff(
                    url=url,
                    change_type="Status",
                    old_status_code=old.status_code,
                    new_status_code=page.status_code,
                ))

            if old.title != page.title:
                result.meta_changes.append(PageDiff(
                    url=url, change_type="Title", old_value=old.title, new_value=page.title,
                ))
            if old.meta_description != page.meta_description:
                result.meta_changes.append(PageDiff(
                    url=url,
                    change_type="Meta",
                    old_value=old.meta_description,
                    new_value=page.meta_description,
                ))

        for url, old in baseline.items():
            if url not in current:
                result.removed_pages.append(PageDiff(
                    url=url, change_type="Removed", old_status_code=old.status_code,
                ))

        self.logger.info(
            f"Compared session {baseline_id} with {comparison_id}: "
            f"{len(result.new_pages)} new, {len(result.removed_pages)} removed, "
            f"{len(result.status_changes)} status changes, "
            f"{len(result.meta_changes)} meta changes"
        )
        return result
