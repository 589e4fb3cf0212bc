"""Data models for X API v2 users, posts and timeline pages."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from x_yapper.ratelimit import RateLimit

VERIFIED_MAX_POST_LENGTH = 4000
DEFAULT_MAX_POST_LENGTH = 280


@dataclass(frozen=True)
class UserProfile:
    id: str
    name: str
    username: str  # handle without @
    verified: bool = False
    verified_type: str | None = None
    most_recent_tweet_id: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> UserProfile:
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            username=data.get("username", ""),
            verified=bool(data.get("verified", False)),
            verified_type=data.get("verified_type"),
            most_recent_tweet_id=data.get("most_recent_tweet_id"),
        )


def max_post_length_for(profile: UserProfile) -> int:
    return VERIFIED_MAX_POST_LENGTH if profile.verified else DEFAULT_MAX_POST_LENGTH


@dataclass(frozen=True)
class PostResult:
    """Result of publishing a post or reply."""

    post_id: str
    rate_limit: RateLimit | None = None


@dataclass(frozen=True)
class PublicMetrics:
    retweet_count: int = 0
    reply_count: int = 0
    like_count: int = 0
    quote_count: int = 0
    impression_count: int = 0

    @classmethod
    def from_dict(cls, data: dict | None) -> PublicMetrics:
        data = data or {}
        return cls(
            retweet_count=int(data.get("retweet_count", 0)),
            reply_count=int(data.get("reply_count", 0)),
            like_count=int(data.get("like_count", 0)),
            quote_count=int(data.get("quote_count", 0)),
            impression_count=int(data.get("impression_count", 0)),
        )


@dataclass(frozen=True)
class Media:
    media_key: str
    type: str  # "photo", "video", "animated_gif"
    url: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> Media:
        return cls(
            media_key=data["media_key"],
            type=data.get("type", "photo"),
            url=data.get("url") or data.get("preview_image_url"),
        )


@dataclass(frozen=True)
class Post:
    id: str
    text: str
    author_id: str | None = None
    created_at: datetime | None = None
    public_metrics: PublicMetrics = field(default_factory=PublicMetrics)
    attachments: dict = field(default_factory=dict)
    entities: dict = field(default_factory=dict)
    author: UserProfile | None = None
    media: list[Media] = field(default_factory=list)

    @property
    def urls(self) -> list[str]:
        return [
            u.get("expanded_url") or u["url"]
            for u in self.entities.get("urls", [])
            if "url" in u or "expanded_url" in u
        ]


@dataclass(frozen=True)
class TimelinePage:
    """One page of the reverse-chronological home timeline."""

    posts: list[Post] = field(default_factory=list)
    users: dict[str, UserProfile] = field(default_factory=dict)
    media: dict[str, Media] = field(default_factory=dict)
    result_count: int = 0
    next_token: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> TimelinePage:
        includes = data.get("includes", {})
        users = {
            u["id"]: UserProfile.from_dict(u) for u in includes.get("users", [])
        }
        media = {
            m["media_key"]: Media.from_dict(m) for m in includes.get("media", [])
        }

        posts = []
        for raw in data.get("data", []):
            attachments = raw.get("attachments", {})
            posts.append(
                Post(
                    id=raw["id"],
                    text=raw.get("text", ""),
                    author_id=raw.get("author_id"),
                    created_at=_parse_timestamp(raw.get("created_at")),
                    public_metrics=PublicMetrics.from_dict(raw.get("public_metrics")),
                    attachments=attachments,
                    entities=raw.get("entities", {}),
                    author=users.get(raw.get("author_id", "")),
                    media=[
                        media[key]
                        for key in attachments.get("media_keys", [])
                        if key in media
                    ],
                )
            )

        meta = data.get("meta", {})
        return cls(
            posts=posts,
            users=users,
            media=media,
            result_count=int(meta.get("result_count", len(posts))),
            next_token=meta.get("next_token"),
        )


def _parse_timestamp(value: str | None) -> datetime | None:
    # X API v2 format: "2024-05-14T18:01:35.000Z"
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


@dataclass(frozen=True)
class SinglePost:
    text: str


@dataclass(frozen=True)
class ThreadPosts:
    texts: list[str]


PostContent = SinglePost | ThreadPosts
