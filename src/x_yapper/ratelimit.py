"""Rate-limit snapshots parsed from X API response headers."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone

REMAINING_HEADER = "X-Rate-Limit-Remaining"
LIMIT_HEADER = "X-Rate-Limit-Limit"
RESET_HEADER = "X-Rate-Limit-Reset"


class RateLimitParseError(ValueError):
    """A rate-limit header was present but not an integer."""


@dataclass(frozen=True)
class RateLimit:
    """Point-in-time quota; informational only."""

    remaining: int
    limit: int
    reset_time: datetime

    def seconds_until_reset(self, now: datetime | None = None) -> int:
        now = now or datetime.now(timezone.utc)
        return max(0, int((self.reset_time - now).total_seconds()))


def parse_rate_limit(headers: Mapping[str, str]) -> RateLimit | None:
    """Build a snapshot from *headers*.

    Returns ``None`` ("unknown") unless all three headers are present.
    Raises :class:`RateLimitParseError` if any of them is malformed.
    """
    values = {
        name: headers.get(name)
        for name in (REMAINING_HEADER, LIMIT_HEADER, RESET_HEADER)
    }
    if not all(values.values()):
        return None

    parsed: dict[str, int] = {}
    for name, raw in values.items():
        try:
            parsed[name] = int(raw)
        except ValueError as exc:
            raise RateLimitParseError(f"invalid {name} header: {raw!r}") from exc

    try:
        reset_time = datetime.fromtimestamp(parsed[RESET_HEADER], tz=timezone.utc)
    except (OverflowError, OSError, ValueError) as exc:
        raise RateLimitParseError(
            f"{RESET_HEADER} out of range: {parsed[RESET_HEADER]}",
        ) from exc

    return RateLimit(
        remaining=parsed[REMAINING_HEADER],
        limit=parsed[LIMIT_HEADER],
        reset_time=reset_time,
    )


def parse_retry_after(value: str | None) -> int:
    """Seconds from a ``Retry-After`` header; 0 when absent or not numeric."""
    if not value:
        return 0
    try:
        return max(0, int(value.strip()))
    except ValueError:
        return 0
