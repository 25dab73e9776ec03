"""Scan session lifecycle: opening and finalizing the session record."""

import logging
from datetime import datetime
from typing import Callable, Optional

from swallows.database import AbstractDatabase
from swallows.models import ScanSession, ScanStatus


class SessionLifecycle:
    """Creates the session record before crawling and finalizes it afterwards."""

    def __init__(
        self,
        storage: AbstractDatabase,
        on_session_started: Optional[Callable[[ScanSession], None]] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """Initialize the lifecycle.

        Args:
            storage: Storage collaborator that persists sessions
            on_session_started: Called once with the new session, before the first fetch
            logger: Logger to report to (defaults to the module logger)
        """
        self.storage = storage
        self.on_session_started = on_session_started
        self.logger = logger or logging.getLogger(__name__)

    def open(self, base_url: str, user_agent: str) -> ScanSession:
        """Create and persist a Running session, then announce it."""
        session = ScanSession(
            base_url=base_url,
            user_agent=user_agent,
            started_at=datetime.now(),
            status=ScanStatus.RUNNING,
        )
        self.storage.create_session(session)
        self.logger.info(f"Scan session {session.id} started for {base_url}")

        if self.on_session_started:
            self.on_session_started(session)

        return session

    def finalize(self, session: ScanSession, status: ScanStatus, total_pages: int) -> ScanSession:
        """Record finish time, terminal status and page count.

        Raises:
            ValueError: If the session is already finished or status is not terminal
        """
        if session.is_finished:
            raise ValueError(
                f"Session {session.id} is already {session.status.value} and cannot change."
            )
        if not status.is_terminal:
            raise ValueError(f"Cannot finalize a session with status {status.value}.")

        session.finished_at = datetime.now()
        session.total_pages_scanned = total_pages
        session.status = status
        self.storage.update_session(session)

        self.logger.info(
            f"Scan session {session.id} {status.value.lower()}: {total_pages} pages scanned"
        )
        return session
