"""
Literal sender patterns used to flag newsletter mail.

Two pattern shapes are supported:
    - ``*@domain``: the address ends with ``domain`` (case-insensitive).
    - anything else: the address equals the pattern (case-insensitive).
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence, Union

WILDCARD_PREFIX = "*@"

DEFAULT_NEWSLETTER_PATTERNS: Sequence[str] = (
    "*@mail.beehiiv.com",
    "*@substack.com",
    "*@convertkit.com",
    "crew@morningbrew.com",
    "hello@thehustle.co",
    "*@newsletters.feedbinusercontent.com",
    "*@ck.convertkit.com",
    "*@ghost.org",
)

_ANGLE_ADDRESS_RE = re.compile(r"<([^>]+)>")
_BARE_ADDRESS_RE = re.compile(r"([^\s]+@[^\s]+)")


@dataclass(frozen=True)
class NewsletterPattern:
    pattern: str
    name: Optional[str] = None

    @property
    def is_wildcard(self) -> bool:
        return self.pattern.startswith(WILDCARD_PREFIX)

    @property
    def domain(self) -> Optional[str]:
        if not self.is_wildcard:
            return None
        return self.pattern[len(WILDCARD_PREFIX):]


PatternLike = Union[str, NewsletterPattern]


def _pattern_text(pattern: PatternLike) -> str:
    if isinstance(pattern, NewsletterPattern):
        return pattern.pattern
    return pattern


def matches_pattern(address: str, pattern: PatternLike) -> bool:
    """
    Return True when ``address`` satisfies a single pattern.

    Wildcard patterns are a plain suffix test on the lowercased address, so
    ``notmail.beehiiv.com`` satisfies ``*@mail.beehiiv.com``.
    """
    text = _pattern_text(pattern)
    lowered = (address or "").lower()
    if text.startswith(WILDCARD_PREFIX):
        domain = text[len(WILDCARD_PREFIX):]
        return lowered.endswith(domain.lower())
    return lowered == text.lower()


def matches_any(address: str, patterns: Iterable[PatternLike]) -> bool:
    return any(matches_pattern(address, pattern) for pattern in patterns)


def extract_email_address(from_value: str) -> str:
    """
    Pull the address out of a From header value.

    ``Name <addr>`` wins; otherwise the first whitespace-free token holding an
    ``@``. Falls back to the raw value when neither shape is present.
    """
    if not from_value:
        return ""
    match = _ANGLE_ADDRESS_RE.search(from_value) or _BARE_ADDRESS_RE.search(from_value)
    if match:
        return match.group(1).strip()
    return from_value


def default_patterns() -> list[NewsletterPattern]:
    return [NewsletterPattern(pattern=item) for item in DEFAULT_NEWSLETTER_PATTERNS]
