"""Base interface for store locator extraction strategies.

A strategy recognises one locator mechanism (a vendor widget, schema.org
markup, an embedded JSON array) in a fetched page and turns it into
RawLocation records. Detection and fetching are split so the registry can
log what fired before any vendor API is called.
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Iterable, List, NamedTuple, Optional, Pattern, Sequence

import requests

from src.shared.grid import GridPoint, sweep_points
from src.shared.location_schema import RawLocation, identity_fields

__all__ = [
    'DetectionPattern',
    'LocatorContext',
    'LocatorStrategy',
    'compile_patterns',
    'dedupe_locations',
    'first_match',
]


@dataclass
class LocatorContext:
    """Per-brand settings and resources shared by every strategy call.

    The session belongs to a single brand's worker thread.
    """
    locator_url: str
    session: requests.Session
    timeout: int
    user_agent: str
    use_curl: bool = True
    sweep_region: Optional[str] = None
    brand_slug: str = ""

    def sweep_points(self) -> List[GridPoint]:
        return sweep_points(self.sweep_region)


class DetectionPattern(NamedTuple):
    """Compiled regex plus the capture group holding the token."""
    regex: Pattern
    group: int = 1


def first_match(text: str, patterns: Sequence[DetectionPattern]) -> Optional[str]:
    """Return the token from the first pattern that matches.

    Pattern order encodes specificity; generic fallbacks go last.
    """
    for pattern in patterns:
        match = pattern.regex.search(text)
        if match:
            value = match.group(pattern.group)
            if value:
                return value
    return None


def compile_patterns(*expressions: str, flags: int = 0) -> tuple:
    return tuple(DetectionPattern(re.compile(expression, flags)) for expression in expressions)


def dedupe_locations(locations: Iterable[RawLocation]) -> List[RawLocation]:
    """Drop repeats of the same (name, city, state, zip), keeping the first."""
    seen = set()
    unique = []
    for location in locations:
        identity = identity_fields(location)
        if identity in seen:
            continue
        seen.add(identity)
        unique.append(location)
    return unique


class LocatorStrategy(ABC):
    """A detect + extract mechanism for one kind of store locator.

    Attributes:
        source: locator_source tag stamped on every record this strategy emits
    """

    source: str = ""

    @abstractmethod
    def detect(self, html: str, context: LocatorContext) -> Optional[Any]:
        """Look for this strategy's mechanism in a locator page.

        Args:
            html: Fetched locator page
            context: Brand fetch context

        Returns:
            A token for fetch() (widget id, parsed payload...) or None if the
            mechanism is absent
        """

    @abstractmethod
    def fetch(self, token: Any, context: LocatorContext) -> List[RawLocation]:
        """Extract locations for a detected token.

        Raises:
            LocatorError: If a vendor API call fails
        """

    def log_prefix(self, context: LocatorContext) -> str:
        return f"[{context.brand_slug}] [{self.source}]" if context.brand_slug else f"[{self.source}]"

    def __repr__(self) -> str:
        return f"{type(self).__name__}(source={self.source!r})"
