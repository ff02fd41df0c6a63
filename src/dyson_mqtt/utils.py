from __future__ import annotations

import re
from datetime import UTC, datetime

__all__ = [
    "format_seconds",
    "iso_timestamp",
    "parse_iso_timestamp",
    "plural",
]

# (ending, replacement, characters removed from the singular)
_PLURAL_RULES: tuple[tuple[str, str, int], ...] = (
    ("on$", "a", 2),
    ("us$", "i", 2),
    ("[^aeiou]y$", "ies", 1),
    ("(ch|is|o|s|sh|x|z)$", "es", 0),
    ("", "s", 0),
)


def plural(count: int, noun: str | tuple[str, str], show_count: bool = True) -> str:
    """Format a count with a singular or plural noun, e.g. ``plural(2, "topic") -> "2 topics"``."""
    singular, explicit_plural = noun if isinstance(noun, tuple) else (noun, "")
    word = singular if count == 1 else explicit_plural
    if not word:
        for ending, replacement, strip in _PLURAL_RULES:
            if re.search(ending, singular, re.IGNORECASE):
                stem = singular[: len(singular) - strip] if strip else singular
                if singular.isupper():
                    replacement = replacement.upper()
                word = stem + replacement
                break
    return f"{count} {word}" if show_count else word


def format_seconds(seconds: float, max_parts: int = 2) -> str:
    """Format a duration as its most significant components, e.g. "1 minute 5 seconds"."""
    ms = round(seconds * 1000)
    if ms < 1:
        return "n/a"
    parts = [
        ("day", ms // 86_400_000),
        ("hour", ms // 3_600_000 % 24),
        ("minute", ms // 60_000 % 60),
        ("second", ms // 1000 % 60),
        ("millisecond", ms % 1000),
    ]
    while parts and parts[0][1] == 0:
        parts.pop(0)
    return " ".join(plural(value, unit) for unit, value in parts[:max_parts] if value)


def iso_timestamp(when: datetime | None = None) -> str:
    """Return an ISO-8601 UTC timestamp with millisecond precision and a ``Z`` suffix."""
    when = when or datetime.now(UTC)
    return when.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_iso_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp as sent by Dyson devices (``Z`` suffix allowed).

    Raises:
        ValueError: If the value is not an ISO-8601 timestamp

    """
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed
