"""Shared test utilities."""

from unittest.mock import MagicMock

from requests.structures import CaseInsensitiveDict

from x_yapper.models import UserProfile


def make_response(
    status_code: int = 200,
    payload: dict | None = None,
    headers: dict[str, str] | None = None,
    text: str = "",
) -> MagicMock:
    """A ``requests.Response`` stand-in with case-insensitive headers."""
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = payload if payload is not None else {}
    resp.headers = CaseInsensitiveDict(headers or {})
    resp.text = text
    return resp


def rate_limit_headers(
    remaining: str = "99", limit: str = "100", reset: str = "1700000000",
) -> dict[str, str]:
    return {
        "X-Rate-Limit-Remaining": remaining,
        "X-Rate-Limit-Limit": limit,
        "X-Rate-Limit-Reset": reset,
    }


def make_profile(
    user_id: str = "42", username: str = "alice", verified: bool = False,
) -> UserProfile:
    return UserProfile(id=user_id, name=username.title(), username=username, verified=verified)


class FakeEditor:
    """Editor double returning queued contents from ``edit``."""

    def __init__(self, *contents: str) -> None:
        self._contents = list(contents)
        self.calls = 0

    def edit(self, initial: str = "") -> str:
        self.calls += 1
        return self._contents.pop(0)
