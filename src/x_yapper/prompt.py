"""Interactive menu: compose in an editor, preview, post, thread, read the timeline."""

from __future__ import annotations

import logging
from collections.abc import Callable

import click
import requests
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.text import Text

from x_yapper import console as out
from x_yapper.client import APIError, RateLimitError, XClient
from x_yapper.console import console
from x_yapper.editor import Editor, EditorError
from x_yapper.models import (
    DEFAULT_MAX_POST_LENGTH,
    Post,
    PostContent,
    SinglePost,
    ThreadPosts,
    UserProfile,
    max_post_length_for,
)
from x_yapper.ratelimit import RateLimit, RateLimitParseError
from x_yapper.text import count_post_length, split_thread, wrap_preview

logger = logging.getLogger(__name__)

BANNER = r"""
    \ \  //
     \ \//
      \ \
     //\ \
    //  \ \
    yapper
"""

MENU = (
    ("1", "New post"),
    ("2", "Reply to latest post"),
    ("3", "New thread"),
    ("4", "Home timeline"),
    ("5", "Exit"),
)

_NEXT_KEYS = {"n", "j", " ", "\r", "\n"}
_PREV_KEYS = {"p", "k"}
_QUIT_KEYS = {"q", "\x1b", "\x03"}


def _ask_menu() -> str:
    console.print()
    for key, label in MENU:
        console.print(f"  {key}. {label}")
    return Prompt.ask(
        "Choose an action",
        choices=[key for key, _ in MENU],
        default="1",
        console=console,
    )


def _confirm_send() -> bool:
    return Confirm.ask("Send?", default=True, console=console)


def describe_rate_limit(rate_limit: RateLimit | None) -> str:
    if rate_limit is None:
        return "Rate limit: unknown"
    reset = rate_limit.reset_time.astimezone().strftime("%H:%M:%S")
    return (
        f"Rate limit: {rate_limit.remaining}/{rate_limit.limit} remaining, "
        f"resets at {reset}"
    )


def content_parts(content: PostContent) -> list[str]:
    match content:
        case SinglePost(text=text):
            return [text]
        case ThreadPosts(texts=texts):
            return list(texts)
    raise TypeError(f"unsupported post content: {content!r}")


def render_post(post: Post, index: int, total: int) -> Panel:
    if post.author is not None:
        author = f"{post.author.name} (@{post.author.username})"
    else:
        author = post.author_id or "unknown"

    body = Text(post.text)
    if post.media:
        body.append("\n\n")
        body.append(", ".join(f"[{m.type}]" for m in post.media), style="dim")
    metrics = post.public_metrics
    body.append(
        f"\n\n♥ {metrics.like_count}  ⟳ {metrics.retweet_count}  "
        f"💬 {metrics.reply_count}  ❝ {metrics.quote_count}",
        style="dim",
    )

    subtitle = f"{index + 1}/{total}"
    if post.created_at is not None:
        subtitle = f"{post.created_at.astimezone():%Y-%m-%d %H:%M} · {subtitle}"
    return Panel(body, title=Text(author, style="bold"), subtitle=subtitle, expand=False)


class PromptSession:
    """State of one interactive run.

    ``latest_post_id`` is the reply target for thread continuation.  It only
    changes after a successful post and is not persisted across runs.
    """

    def __init__(
        self,
        client: XClient,
        editor: Editor,
        *,
        profile: UserProfile | None = None,
        max_post_length: int = DEFAULT_MAX_POST_LENGTH,
        ask: Callable[[], str] | None = None,
        confirm: Callable[[], bool] | None = None,
        read_key: Callable[[], str] | None = None,
    ) -> None:
        self.client = client
        self.editor = editor
        self.profile = profile
        self.max_post_length = max_post_length
        self.latest_post_id: str | None = None
        self._ask = ask or _ask_menu
        self._confirm = confirm or _confirm_send
        self._read_key = read_key or click.getchar

    def run(self) -> None:
        console.print(Text(BANNER, style="bold cyan"))
        if self.profile is not None:
            out.info(
                f"Logged in as @{self.profile.username} "
                f"(max {self.max_post_length} characters per post)",
            )

        actions = {
            "1": self.new_post,
            "2": self.reply_to_latest,
            "3": self.new_thread,
            "4": self.show_timeline,
        }
        while True:
            try:
                choice = self._ask()
            except (KeyboardInterrupt, EOFError):
                console.print()
                out.info("Goodbye!")
                return
            if choice == "5":
                out.info("Goodbye!")
                return

            action = actions.get(choice)
            if action is None:
                out.warn(f"Unknown choice: {choice}")
                continue
            try:
                action()
            except KeyboardInterrupt:
                console.print()
                out.warn("Cancelled. Returning to main menu.")

    # --- composing ---

    def compose(self, *, thread: bool = False) -> PostContent | None:
        try:
            content = self.editor.edit()
        except EditorError as exc:
            out.error(str(exc))
            return None

        if not content.strip():
            out.warn("No content entered. Returning to main menu.")
            return None

        if not thread:
            return SinglePost(content)
        parts = split_thread(content)
        if not parts:
            out.warn("No content entered. Returning to main menu.")
            return None
        if len(parts) == 1:
            return SinglePost(parts[0])
        return ThreadPosts(parts)

    def validate(self, content: PostContent) -> bool:
        parts = content_parts(content)
        for index, text in enumerate(parts, 1):
            length = count_post_length(text)
            if length > self.max_post_length:
                label = "Post" if len(parts) == 1 else f"Post {index}/{len(parts)}"
                out.warn(
                    f"{label} is too long: {length}/{self.max_post_length} characters.",
                )
                return False
        return True

    def preview(self, content: PostContent) -> None:
        parts = content_parts(content)
        for index, text in enumerate(parts, 1):
            title = "Post Preview" if len(parts) == 1 else f"Post {index}/{len(parts)}"
            console.print(
                Panel(
                    Text(wrap_preview(text)),
                    title=title,
                    subtitle=f"{count_post_length(text)}/{self.max_post_length}",
                    expand=False,
                )
            )

    def _compose_and_send(self, *, thread: bool, reply_to: str | None = None) -> None:
        content = self.compose(thread=thread)
        if content is None or not self.validate(content):
            return
        self.preview(content)
        if not self._confirm():
            out.info("Post discarded.")
            return
        self.publish(content, reply_to=reply_to)

    def new_post(self) -> None:
        self._compose_and_send(thread=False)

    def new_thread(self) -> None:
        out.info("Separate the posts of your thread with a line containing only ---")
        self._compose_and_send(thread=True)

    def reply_to_latest(self) -> None:
        if self.latest_post_id is None:
            out.warn("No post sent in this session yet. Create a new post first.")
            return
        out.info(f"Replying to post {self.latest_post_id}")
        self._compose_and_send(thread=True, reply_to=self.latest_post_id)

    # --- sending ---

    def publish(self, content: PostContent, *, reply_to: str | None = None) -> bool:
        """Send every part, each replying to the previous one.

        Stops at the first failure; ``latest_post_id`` then still points at
        the last post that was actually created.
        """
        parts = content_parts(content)
        parent = reply_to
        for index, text in enumerate(parts, 1):
            try:
                if parent is None:
                    result = self.client.send_post(text)
                else:
                    result = self.client.send_reply_post(text, parent)
            except (APIError, requests.RequestException) as exc:
                logger.debug("Post %d/%d failed", index, len(parts), exc_info=True)
                out.error(f"Failed to send post {index}/{len(parts)}: {exc}")
                return False

            parent = result.post_id
            self.latest_post_id = result.post_id
            out.success(f"Post {index}/{len(parts)} sent: {self._post_url(result.post_id)}")
            out.info(describe_rate_limit(result.rate_limit))
        return True

    def _post_url(self, post_id: str) -> str:
        if self.profile is not None:
            return f"https://x.com/{self.profile.username}/status/{post_id}"
        return f"https://x.com/i/status/{post_id}"

    # --- timeline ---

    def _ensure_profile(self) -> UserProfile | None:
        if self.profile is not None:
            return self.profile
        try:
            self.profile = self.client.get_me()
        except (APIError, requests.RequestException) as exc:
            out.error(f"Could not fetch your profile: {exc}")
            return None
        self.max_post_length = max_post_length_for(self.profile)
        return self.profile

    def show_timeline(self) -> None:
        profile = self._ensure_profile()
        if profile is None:
            return

        try:
            page, rate_limit = self.client.get_home_timeline(profile.id)
        except RateLimitError as exc:
            out.warn(f"Rate limit exceeded. Retry after {exc.retry_after} seconds.")
            out.info(describe_rate_limit(exc.rate_limit))
            return
        except (APIError, RateLimitParseError, requests.RequestException) as exc:
            out.error(f"Failed to fetch timeline: {exc}")
            return

        out.info(describe_rate_limit(rate_limit))
        if not page.posts:
            out.info("Your timeline is empty.")
            return
        self.page_through(page.posts)

    def page_through(self, posts: list[Post]) -> None:
        index = 0
        while True:
            console.print(render_post(posts[index], index, len(posts)))
            console.print("n/space: next · p: previous · q: back to menu", style="dim")
            key = self._read_key().lower()
            if key in _QUIT_KEYS:
                return
            if key in _NEXT_KEYS:
                if index + 1 >= len(posts):
                    out.info("End of page.")
                    return
                index += 1
            elif key in _PREV_KEYS:
                index = max(0, index - 1)
