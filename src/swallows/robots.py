"""robots.txt politeness policy: prefix allow/disallow rules per user agent."""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional
from urllib.parse import urlparse, urlsplit

import httpx

from swallows.constants import ROBOTS_TXT_TIMEOUT_SECONDS


WILDCARD_AGENT = "*"


@dataclass
class RuleGroup:
    """Allow and disallow path prefixes registered for one user agent."""

    disallows: List[str] = field(default_factory=list)
    allows: List[str] = field(default_factory=list)


class RobotsTxtParser:
    """Fetches and evaluates a site's robots.txt.

    Only literal prefix rules are supported. Within the group selected for an
    agent, the longest matching prefix decides; an allow rule wins a tie with
    a disallow rule of the same length.
    """

    def __init__(
        self,
        timeout: float = ROBOTS_TXT_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """Initialize the parser.

        Args:
            timeout: Timeout for the robots.txt request in seconds
            transport: Optional httpx transport (used by tests to serve fixtures)
            logger: Logger to report to (defaults to the module logger)
        """
        self.timeout = timeout
        self._transport = transport
        self.logger = logger or logging.getLogger(__name__)

        self._rules: Dict[str, RuleGroup] = {}
        self.raw_content: str = ""
        self.robots_url: Optional[str] = None

    @property
    def agents(self) -> List[str]:
        """User agents that have a group, lower-cased."""
        return list(self._rules)

    async def load(self, seed_url: str, agent: str) -> None:
        """Fetch and parse robots.txt for the seed URL's origin.

        Any failure leaves the rule table empty, which allows everything.

        Args:
            seed_url: Any URL on the site being crawled
            agent: User agent sent with the request
        """
        self._rules = {}
        self.raw_content = ""

        try:
            parsed = urlparse(seed_url)
            self.robots_url = f"{parsed.scheme}://{parsed.netloc}/robots.txt"

            async with httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                transport=self._transport,
                headers={"User-Agent": agent, "Accept": "text/plain,*/*"},
            ) as client:
                response = await client.get(self.robots_url)

            if response.is_success:
                self.parse(response.text)
                self.logger.info(
                    f"Loaded robots.txt from {self.robots_url} "
                    f"({len(self._rules)} agent groups)"
                )
            else:
                self.logger.info(
                    f"No robots.txt found at {self.robots_url} "
                    f"(status: {response.status_code}), allowing all paths"
                )
        except Exception as e:
            self._rules = {}
            self.logger.warning(f"Could not load robots.txt for {seed_url}: {e}")

    def parse(self, content: str) -> None:
        """Rebuild the rule table from robots.txt content.

        Args:
            content: Raw robots.txt text
        """
        self._rules = {}
        self.raw_content = content

        current_agents: List[str] = []
        last_was_rule = False

        for line in content.splitlines():
            clean_line = line.split('#', 1)[0].strip()
            if not clean_line or ':' not in clean_line:
                continue

            name, value = clean_line.split(':', 1)
            name = name.strip().lower()
            value = value.strip()

            if name == "user-agent":
                if last_was_rule:
                    current_agents = []
                agent = value.lower()
                current_agents.append(agent)
                self._rules.setdefault(agent, RuleGroup())
                last_was_rule = False

            elif name in ("allow", "disallow"):
                last_was_rule = True
                if not value:
                    # An empty rule restricts nothing
                    continue
                for agent in current_agents:
                    group = self._rules[agent]
                    if name == "allow":
                        group.allows.append(value)
                    else:
                        group.disallows.append(value)

    def is_allowed(self, path: str, agent: str) -> bool:
        """Check whether a path may be fetched by an agent.

        Args:
            path: URL path (optionally with query string)
            agent: User agent string

        Returns:
            True if the path is allowed
        """
        group = self._select_group(agent)
        if group is None:
            return True

        path = path or "/"
        lowered = path.lower()

        best_length = -1
        best_allowed = True
        for prefix in group.disallows:
            if lowered.startswith(prefix.lower()) and len(prefix) > best_length:
                best_length = len(prefix)
                best_allowed = False
        for prefix in group.allows:
            # allow wins ties
            if lowered.startswith(prefix.lower()) and len(prefix) >= best_length:
                best_length = len(prefix)
                best_allowed = True

        return best_allowed

    def is_url_allowed(self, url: str, agent: str) -> bool:
        """Check an absolute URL using its path and query."""
        parsed = urlsplit(url)
        path = parsed.path or "/"
        if parsed.query:
            path = f"{path}?{parsed.query}"
        return self.is_allowed(path, agent)

    def _select_group(self, agent: str) -> Optional[RuleGroup]:
        """Pick the group for the exact agent, its product token, then the wildcard."""
        candidates = [agent.lower()]
        token = agent.split('/', 1)[0].strip().lower()
        if token and token != candidates[0]:
            candidates.append(token)
        candidates.append(WILDCARD_AGENT)

        for candidate in candidates:
            if candidate in self._rules:
                return self._rules[candidate]
        return None
