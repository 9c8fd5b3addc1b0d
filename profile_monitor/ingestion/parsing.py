"""
HTML extraction for the media provider.

The provider returns rendered HTML fragments inside a JSON envelope. These
functions pull media links, captions and relative timestamps out of that
markup with BeautifulSoup. They are pure: no I/O, no logging of payloads.
"""

import re
from datetime import datetime, timedelta, timezone

from bs4 import BeautifulSoup, Tag

from profile_monitor.ingestion.schemas import FeedItem, MediaKind

_RELATIVE_TIME_PATTERN = re.compile(r"(\d+)\s*(day|week|month)s?\s*ago", re.IGNORECASE)

_UNIT_DAYS = {"day": 1, "week": 7, "month": 30}

_IMAGE_SUFFIXES = (".jpg", ".jpeg", ".png")


def extract_story_media(html: str) -> tuple[str, MediaKind] | None:
    """
    Find the active story's media link in a story HTML fragment.

    Video sources win over photos. Returns None when the markup holds no
    recognizable media link.
    """
    soup = BeautifulSoup(html, "html.parser")

    source = soup.select_one('video > source[type="video/mp4"]')
    if source and source.get("src"):
        return source["src"], MediaKind.VIDEO

    download = soup.select_one("a.btn.bg-gradient-success[href]")
    if download and download["href"].endswith(".mp4"):
        return download["href"], MediaKind.VIDEO

    link = soup.select_one('a[href$=".mp4"]')
    if link:
        return link["href"], MediaKind.VIDEO
    source = soup.select_one('video > source[src$=".mp4"]')
    if source:
        return source["src"], MediaKind.VIDEO

    image = soup.select_one("img.story-image")
    if image and image.get("src"):
        return image["src"], MediaKind.PHOTO

    for anchor in soup.select("a[href]"):
        if anchor["href"].lower().endswith(_IMAGE_SUFFIXES):
            return anchor["href"], MediaKind.PHOTO

    return None


def parse_relative_time(text: str, now: datetime | None = None) -> datetime:
    """
    Convert "3 days ago" style text to an absolute timestamp.

    Months count as 30 days. Unrecognized text maps to ``now``.
    """
    now = now or datetime.now(timezone.utc)
    match = _RELATIVE_TIME_PATTERN.search(text)
    if not match:
        return now
    amount, unit = int(match.group(1)), match.group(2).lower()
    return now - timedelta(days=amount * _UNIT_DAYS[unit])


def _download_link(element: Tag) -> Tag | None:
    for anchor in element.find_all("a"):
        if "Download HD" in anchor.get_text():
            return anchor
    return None


def _is_post_container(element: Tag) -> bool:
    has_counter = any("K" in small.get_text() for small in element.find_all("small"))
    return has_counter and _download_link(element) is not None


def _post_media_url(element: Tag) -> str | None:
    link = _download_link(element)
    if link and link.get("href"):
        return link["href"]

    source = element.select_one("video > source")
    if source and source.get("src"):
        return source["src"]

    image = element.find("img")
    if image and image.get("src"):
        return image["src"]
    return None


def _post_media_kind(element: Tag) -> MediaKind:
    if (
        element.find("video")
        or element.select_one('source[type="video/mp4"]')
        or element.select_one('a[href$=".mp4"]')
    ):
        return MediaKind.VIDEO
    return MediaKind.PHOTO


def _post_caption(element: Tag) -> str | None:
    paragraph = element.find("p")
    if paragraph is None:
        return None
    return paragraph.get_text().strip() or None


def _post_timestamp(element: Tag, now: datetime) -> datetime:
    for small in element.find_all("small"):
        text = small.get_text()
        if "ago" in text:
            return parse_relative_time(text.strip(), now)
    return now


def extract_posts(
    html: str,
    identity: str,
    now: datetime | None = None,
) -> list[FeedItem]:
    """
    Extract feed posts from a posts HTML fragment.

    A post is the innermost ``div`` carrying both a like counter (a
    ``small`` with "K") and a "Download HD" link. Items are returned in
    page order, de-duplicated by id.
    """
    now = now or datetime.now(timezone.utc)
    soup = BeautifulSoup(html, "html.parser")

    items: list[FeedItem] = []
    seen: set[str] = set()

    for div in soup.find_all("div"):
        if not _is_post_container(div):
            continue
        # Wrapper divs qualify too; only the innermost match is a post
        if any(_is_post_container(child) for child in div.find_all("div")):
            continue

        media_url = _post_media_url(div)
        if not media_url:
            continue

        item = FeedItem(
            identity=identity,
            media_url=media_url,
            media_kind=_post_media_kind(div),
            caption=_post_caption(div),
            timestamp=_post_timestamp(div, now),
        )
        if item.item_id in seen:
            continue
        seen.add(item.item_id)
        items.append(item)

    return items
