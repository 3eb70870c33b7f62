"""
Include filters over Maven coordinates.

A pattern has the form::

    [groupId]:[artifactId]:[type]:[version]

Each segment is optional and supports full and partial ``*`` wildcards; an
empty segment is an implicit wildcard. Patterns are matched from the start of
``groupId:artifactId:type:version:``, so ``org.foo`` includes every artifact
of that group and ``org.foo:bar::1.*`` includes every 1.x version of bar.
Version ranges are not supported.
"""

import logging
import re
from typing import List, Optional, Sequence

from .errors import FilterSyntaxError
from .models import Dependency

logger = logging.getLogger(__name__)

MAX_SEGMENTS = 4

# Characters that may appear in a Maven coordinate, plus the wildcard
SEGMENT_PATTERN = re.compile(r'^[A-Za-z0-9_.\-+$*{}\[\](),]*$')


class IncludesFilter:
    """A single compiled include pattern."""

    def __init__(self, pattern: str):
        """
        Compile a pattern.

        Args:
            pattern: [groupId]:[artifactId]:[type]:[version]

        Raises:
            FilterSyntaxError: If the pattern is empty or cannot be compiled
        """
        self.pattern = pattern
        if pattern is None or not pattern.strip():
            raise FilterSyntaxError(str(pattern), "pattern is empty")

        segments = pattern.strip().split(":")
        if len(segments) > MAX_SEGMENTS:
            raise FilterSyntaxError(pattern, f"expected at most {MAX_SEGMENTS} segments, got {len(segments)}")

        regex = "^"
        for segment in segments:
            if not SEGMENT_PATTERN.match(segment):
                raise FilterSyntaxError(pattern, f"illegal character in segment '{segment}'")
            if segment:
                regex += re.escape(segment).replace(r"\*", "[^:]*") + ":"
            else:
                regex += "[^:]*:"
        regex += ".*"

        try:
            self.regex = re.compile(regex)
        except re.error as e:
            raise FilterSyntaxError(pattern, str(e)) from e

    def matches(self, coordinate_string: str) -> bool:
        """Check a groupId:artifactId:type:version: string against this pattern."""
        return self.regex.match(coordinate_string) is not None

    def __repr__(self) -> str:
        return f"IncludesFilter({self.pattern!r})"


def parse_includes(includes: Optional[str]) -> Optional[List[IncludesFilter]]:
    """
    Build filters from a comma-separated list of patterns.

    Returns:
        None if no includes are configured, the compiled filters otherwise
    """
    if includes is None or not includes.strip():
        return None
    filters = [IncludesFilter(part.strip()) for part in includes.split(",") if part.strip()]
    logger.info(f"Filtering dependencies with {len(filters)} include pattern(s)")
    return filters


def is_included(filters: Optional[Sequence[IncludesFilter]], dependency: Dependency) -> bool:
    """
    Evaluate if a dependency is to be included in the analysis.

    Returns:
        True iff no filters are configured or at least one filter matches
    """
    if not filters:
        return True
    coordinate_string = dependency.coordinate_string
    return any(f.matches(coordinate_string) for f in filters)
