"""Markdown message builders for every notification kind."""

from datetime import datetime, timezone

from profile_monitor.history.schemas import Snapshot
from profile_monitor.ingestion.schemas import FeedItem, MediaKind, StoryItem
from profile_monitor.monitor.changes import ChangeSet

BIO_SNIPPET_LENGTH = 70


def _number(value: int | None) -> str:
    return f"{value:,}" if value is not None else "N/A"


def _signed(delta: int) -> str:
    return f"{delta:+,}"


def _trend(delta: int) -> str:
    if delta > 0:
        return "📈"
    if delta < 0:
        return "📉"
    return "➖"


def _timestamp(now: datetime | None) -> str:
    now = now or datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%d %H:%M:%S %Z").strip()


def profile_link(identity: str, url: str) -> str:
    return f"[@{identity}]({url})"


def format_change_summary(
    changes: ChangeSet,
    current: Snapshot,
    previous: Snapshot,
    profile_url: str,
    now: datetime | None = None,
) -> str:
    """Summary of what moved between two snapshots, with current stats."""
    lines = [f"🔄 *Changes detected for* {profile_link(current.identity, profile_url)}", ""]

    for label, delta in (
        ("Followers", changes.followers_delta),
        ("Following", changes.following_delta),
        ("Posts", changes.posts_delta),
    ):
        if delta:
            lines.append(f"{_trend(delta)} *{label}:* {_signed(delta)}")

    if changes.verified_changed:
        status = "Now Verified" if current.is_verified else "No Longer Verified"
        lines.append(f"✅ *Verified Status:* {status}")

    if changes.private_changed:
        icon, status = ("🔒", "Now Private") if current.is_private else ("🌎", "Now Public")
        lines.append(f"{icon} *Privacy:* {status}")

    if changes.name_changed:
        lines.append(
            f"👤 *Name:* {previous.display_name or 'N/A'} → {current.display_name or 'N/A'}"
        )

    if changes.avatar_changed:
        lines.append("🖼️ *Profile Picture:* Updated")

    lines += [
        "",
        "📊 *Current Stats*",
        f"👥 *Followers:* {_number(current.followers)}",
        f"➡️ *Following:* {_number(current.following)}",
        f"📝 *Posts:* {_number(current.posts)}",
        "",
        f"🕒 *Detected at:* {_timestamp(now)}",
        "",
        f"[View Profile]({profile_url})",
    ]
    return "\n".join(lines)


def format_stats_card(
    snapshot: Snapshot,
    profile_url: str,
    follower_change: int | None = None,
    history_length: int = 1,
    now: datetime | None = None,
) -> str:
    """Current stats of an identity, optionally with a follower trend."""
    lines = [
        f"👤 *Name:* {snapshot.display_name or 'N/A'}",
        f"👥 *Followers:* {_number(snapshot.followers)}",
        f"➡️ *Following:* {_number(snapshot.following)}",
        f"📝 *Posts:* {_number(snapshot.posts)}",
        f"✅ *Verified:* {'Yes' if snapshot.is_verified else 'No'}",
        "🔒 Private Account" if snapshot.is_private else "🌎 Public Account",
    ]

    if snapshot.description:
        bio = snapshot.description.replace("\n", " ")
        ellipsis = "..." if len(bio) > BIO_SNIPPET_LENGTH else ""
        lines.append(f"📜 *Bio:* {bio[:BIO_SNIPPET_LENGTH]}{ellipsis}")

    if follower_change is not None and history_length > 1:
        sign = "+" if follower_change > 0 else ""
        lines += [
            "",
            f"{_trend(follower_change)} *Change (last {history_length} checks):* "
            f"{sign}{follower_change:,} followers",
        ]

    lines += [
        "",
        f"🕒 *Last Checked:* {_timestamp(now)}",
        "",
        f"[View Profile]({profile_url})",
    ]
    return "\n".join(lines)


def format_initial_data(snapshot: Snapshot, profile_url: str) -> str:
    return (
        f"📊 *Initial data for* {profile_link(snapshot.identity, profile_url)}\n\n"
        f"{format_stats_card(snapshot, profile_url)}"
    )


def _media_emoji(kind: MediaKind) -> str:
    return "🎬" if kind == MediaKind.VIDEO else "📸"


def format_story(item: StoryItem, profile_url: str) -> str:
    return f"{_media_emoji(item.media_kind)} New Instagram story from {profile_link(item.identity, profile_url)}"


def format_post(item: FeedItem, profile_url: str) -> str:
    header = f"{_media_emoji(item.media_kind)} New Instagram post from {profile_link(item.identity, profile_url)}"
    if item.caption:
        return f"{header}\n\n{item.caption}"
    return header
