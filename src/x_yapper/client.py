"""X API v2 client for posts, threaded replies and the home timeline."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import requests
from requests_oauthlib import OAuth1

from x_yapper.models import (
    DEFAULT_MAX_POST_LENGTH,
    PostResult,
    TimelinePage,
    UserProfile,
    max_post_length_for,
)
from x_yapper.ratelimit import (
    RateLimit,
    RateLimitParseError,
    parse_rate_limit,
    parse_retry_after,
)

logger = logging.getLogger(__name__)

_BASE_URL = "https://api.x.com/2"
_TIMEOUT = 30
_TIMELINE_PAGE_SIZE = 5
_USER_FIELDS = "id,name,username,verified,verified_type,most_recent_tweet_id"
_TIMELINE_PARAMS = {
    "tweet.fields": "attachments,author_id,created_at,entities,id,public_metrics,text",
    "expansions": "author_id,attachments.media_keys",
    "user.fields": "id,name,username,verified",
    "media.fields": "media_key,type,url,preview_image_url",
}


class APIError(RuntimeError):
    """Non-success response from the X API."""

    def __init__(self, message: str, *, status_code: int, body: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class RateLimitError(APIError):
    """HTTP 429. Carries the quota data; callers decide what to do."""

    def __init__(
        self,
        *,
        retry_after: int,
        rate_limit: RateLimit | None,
        body: str = "",
    ) -> None:
        super().__init__(
            f"rate limit exceeded, retry after {retry_after}s",
            status_code=429,
            body=body,
        )
        self.retry_after = retry_after
        self.rate_limit = rate_limit


def _malformed(resp: requests.Response, what: str, exc: Exception) -> APIError:
    return APIError(
        f"unexpected {what} response, status code: {resp.status_code} ({exc!r})",
        status_code=resp.status_code,
        body=resp.text,
    )


@dataclass(frozen=True)
class OAuth1Credentials:
    """OAuth 1.0a user-context credentials (alternative to a bearer token)."""

    consumer_key: str
    consumer_secret: str
    access_token: str
    access_token_secret: str


class XClient:
    """HTTP client for X REST API v2.

    Usage::

        with XClient(access_token="...") as client:
            result = client.send_post("Hello X!")
            client.send_reply_post("and more", result.post_id)
    """

    def __init__(
        self,
        access_token: str | None = None,
        *,
        oauth1: OAuth1Credentials | None = None,
        timeout: float = _TIMEOUT,
    ) -> None:
        if access_token is None and oauth1 is None:
            raise ValueError("either access_token or oauth1 credentials are required")
        self._session = requests.Session()
        if oauth1 is not None:
            self._session.auth = OAuth1(
                oauth1.consumer_key,
                oauth1.consumer_secret,
                oauth1.access_token,
                oauth1.access_token_secret,
            )
        else:
            self._session.headers.update({
                "Authorization": f"Bearer {access_token}",
            })
        self._timeout = timeout

    def get_me(self) -> UserProfile:
        """Return the authenticated user's profile."""
        resp = self._session.get(
            f"{_BASE_URL}/users/me",
            params={"user.fields": _USER_FIELDS},
            timeout=self._timeout,
        )
        if resp.status_code != 200:
            raise APIError(
                f"error fetching user info, status code: {resp.status_code}",
                status_code=resp.status_code,
                body=resp.text,
            )
        try:
            return UserProfile.from_dict(resp.json()["data"])
        except (KeyError, TypeError, ValueError) as exc:
            raise _malformed(resp, "user info", exc) from exc

    def send_post(self, text: str) -> PostResult:
        """Publish a top-level post."""
        return self._create_post({"text": text})

    def send_reply_post(self, text: str, in_reply_to_id: str) -> PostResult:
        """Publish *text* as a reply to *in_reply_to_id* (thread continuation)."""
        return self._create_post({
            "text": text,
            "reply": {"in_reply_to_tweet_id": in_reply_to_id},
        })

    def _create_post(self, body: dict) -> PostResult:
        resp = self._session.post(
            f"{_BASE_URL}/tweets", json=body, timeout=self._timeout,
        )
        if resp.status_code not in (200, 201):
            raise APIError(
                f"error posting, status code: {resp.status_code}",
                status_code=resp.status_code,
                body=resp.text,
            )
        try:
            post_id = resp.json()["data"]["id"]
        except (KeyError, TypeError, ValueError) as exc:
            raise _malformed(resp, "post", exc) from exc
        logger.debug("Created post %s", post_id)

        try:
            rate_limit = parse_rate_limit(resp.headers)
        except RateLimitParseError as exc:
            logger.warning("Ignoring rate-limit headers on post %s: %s", post_id, exc)
            rate_limit = None
        return PostResult(post_id=post_id, rate_limit=rate_limit)

    def get_home_timeline(
        self, user_id: str, max_results: int = _TIMELINE_PAGE_SIZE,
    ) -> tuple[TimelinePage, RateLimit | None]:
        """Fetch one page of the reverse-chronological home timeline.

        Raises :class:`RateLimitError` on HTTP 429 and
        :class:`~x_yapper.ratelimit.RateLimitParseError` on malformed
        rate-limit headers.  No cursor following.
        """
        params = {"max_results": str(max_results), **_TIMELINE_PARAMS}
        resp = self._session.get(
            f"{_BASE_URL}/users/{user_id}/timelines/reverse_chronological",
            params=params,
            timeout=self._timeout,
        )

        if resp.status_code == 429:
            raise self._rate_limit_error(resp)

        if resp.status_code != 200:
            raise APIError(
                f"error fetching timeline, status code: {resp.status_code}",
                status_code=resp.status_code,
                body=resp.text,
            )

        rate_limit = parse_rate_limit(resp.headers)
        try:
            page = TimelinePage.from_dict(resp.json())
        except (KeyError, TypeError, ValueError) as exc:
            raise _malformed(resp, "timeline", exc) from exc
        return page, rate_limit

    @staticmethod
    def _rate_limit_error(resp: requests.Response) -> RateLimitError:
        try:
            rate_limit = parse_rate_limit(resp.headers)
        except RateLimitParseError as exc:
            logger.warning("Could not extract rate limit info: %s", exc)
            rate_limit = None
        retry_after = parse_retry_after(resp.headers.get("Retry-After"))
        if rate_limit is not None:
            logger.info(
                "Rate limit (429) - remaining %d/%d, reset %s",
                rate_limit.remaining,
                rate_limit.limit,
                rate_limit.reset_time.isoformat(),
            )
        return RateLimitError(
            retry_after=retry_after, rate_limit=rate_limit, body=resp.text,
        )

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> XClient:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()


def probe_account(client: XClient) -> tuple[int, UserProfile | None]:
    """Return ``(max_post_length, profile)``; degrades to 280 on any failure."""
    try:
        profile = client.get_me()
    except (APIError, requests.RequestException, KeyError, ValueError) as exc:
        logger.warning("Account probe failed, assuming unverified account: %s", exc)
        return DEFAULT_MAX_POST_LENGTH, None
    return max_post_length_for(profile), profile
