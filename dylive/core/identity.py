"""
dylive - Identity Resolver
Finds share links in free text and turns them into user or room IDs.
"""

import logging
import re
from enum import Enum
from typing import Optional, Tuple

from .douyin_client import DouyinClient
from .errors import NoUrlError, TooManyRedirectsError
from .models import ROOM_REFLOW_PREFIX, USER_PAGE_PREFIX

logger = logging.getLogger(__name__)

SHORT_LINK_PREFIX = "https://v.douyin.com/"

RE_SHARE_URL = re.compile(r'https?://v\.douyin\.com/([A-Za-z0-9]{7,})/')
RE_SHARE_ID = re.compile(r'[A-Za-z0-9]{7,}')
RE_ID = re.compile(r'[0-9]{10,20}')
RE_CANONICAL_URL = re.compile(
    r'https://(?:www\.iesdouyin\.com/share/user/|webcast\.amemv\.com/webcast/reflow/)[^\s"<>]+'
)


class UrlKind(str, Enum):
    USER_PROFILE = "user_profile"
    ROOM_REFLOW = "room_reflow"
    SHORT_LINK = "short_link"
    UNKNOWN = "unknown"


def get_page_url_str(text: str) -> Tuple[str, str]:
    """
    Find a share URL in a share message.

    Returns:
        (url, matched text). A bare share code is expanded into a short link.
        ("", "") when nothing is found.
    """
    match = RE_SHARE_URL.search(text or "")
    if match:
        return match.group(0), match.group(0)

    match = RE_SHARE_ID.search(text or "")
    if match:
        return f"{SHORT_LINK_PREFIX}{match.group(0)}/", match.group(0)

    return "", ""


def get_page_url(text: str) -> str:
    """Get the page URL in a share message, "" if none."""
    return get_page_url_str(text)[0]


def classify_url(url: str) -> UrlKind:
    if url.startswith(USER_PAGE_PREFIX):
        return UrlKind.USER_PROFILE
    if url.startswith(ROOM_REFLOW_PREFIX):
        return UrlKind.ROOM_REFLOW
    if url.startswith(SHORT_LINK_PREFIX):
        return UrlKind.SHORT_LINK
    return UrlKind.UNKNOWN


def _numeric_id(url: str) -> int:
    match = RE_ID.search(url)
    return int(match.group(0)) if match else 0


def id_from_canonical_url(url: str) -> Tuple[int, int]:
    """(user_id, room_id) from a profile or reflow URL, without any request."""
    kind = classify_url(url)
    if kind == UrlKind.USER_PROFILE:
        return _numeric_id(url), 0
    if kind == UrlKind.ROOM_REFLOW:
        return 0, _numeric_id(url)
    return 0, 0


async def get_id_from_url(client: DouyinClient, url: str,
                          max_hops: Optional[int] = None) -> Tuple[int, int]:
    """
    Get user ID or room ID from a page URL.

    Short links are followed one redirect at a time. The ID not targeted by the
    URL is always 0; unknown URLs give (0, 0).

    Raises:
        TooManyRedirectsError: more than max_hops short-link redirects
        TransportError: a redirect request failed
    """
    hops = max_hops if max_hops is not None else client.settings.max_redirect_hops
    seen = 0

    while classify_url(url) == UrlKind.SHORT_LINK:
        if seen >= hops:
            raise TooManyRedirectsError(f"Gave up after {hops} redirects", url=url)
        seen += 1
        location = await client.get_location(get_page_url(url) or url)
        logger.debug(f"{url} -> {location or '(no redirect)'}")
        if not location:
            return 0, 0
        url = location

    return id_from_canonical_url(url)


def find_url(text: str) -> str:
    """A canonical profile/reflow URL in text, else a share link, else ""."""
    match = RE_CANONICAL_URL.search(text or "")
    return match.group(0) if match else get_page_url(text)


async def resolve_share_text(client: DouyinClient, text: str) -> Tuple[int, int]:
    """
    Resolve free-form share text to (user_id, room_id).

    Raises:
        NoUrlError: the text has no share link or share code
    """
    url = find_url(text)
    if not url:
        raise NoUrlError(f"No URL found in {text!r}")
    return await get_id_from_url(client, url)
