"""
dylive - Decoder
Turns extracted payloads into Room, User and Category snapshots.

Decoding is tolerant: unknown fields are ignored and absent fields fall back to
empty values. Only the absence of the target object itself is an error.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from .errors import CredentialRejectedError, InvalidPageDataError, NoRoomError, NoUserError
from .models import (
    ROOM_STATUS_LIVE_ON,
    Category,
    Room,
    User,
    live_url,
    room_url,
    user_url,
)

logger = logging.getLogger(__name__)

# Key of the page block holding partitionData/roomsData on category pages
CATEGORY_BLOCK_KEY = "874cbd3ca82b27af9f285883fd26e52f"

PREFERRED_LABELS = ("FULL_HD1", "HD1")


# ============ Tolerant accessors ============

def _dict(obj: Any, *keys: str) -> Dict[str, Any]:
    for key in keys:
        if not isinstance(obj, dict):
            return {}
        obj = obj.get(key)
    return obj if isinstance(obj, dict) else {}


def _list(obj: Any, *keys: str) -> List[Any]:
    for key in keys:
        if not isinstance(obj, dict):
            return []
        obj = obj.get(key)
    return obj if isinstance(obj, list) else []


def _str(value: Any) -> str:
    if value is None or isinstance(value, (dict, list)):
        return ""
    if isinstance(value, bool):
        return str(int(value))
    return str(value)


def _int(value: Any) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return 0
    return 0


def _first(values: Any) -> str:
    if isinstance(values, list) and values:
        return _str(values[0])
    return ""


def _url_map(obj: Any) -> Dict[str, str]:
    if not isinstance(obj, dict):
        return {}
    return {str(label): url for label, url in obj.items() if isinstance(url, str) and url}


def _timestamp(value: Any) -> Optional[datetime]:
    ts = _int(value)
    if ts <= 0:
        return None
    return datetime.fromtimestamp(ts, tz=timezone.utc)


def _loads(payload: str) -> Any:
    try:
        return json.loads(payload)
    except (TypeError, ValueError) as e:
        logger.debug(f"Payload is not JSON: {e}")
        return None


# ============ Derived fields ============

def _preferred_url(manifest: Dict[str, str]) -> str:
    for label in PREFERRED_LABELS:
        if manifest.get(label):
            return manifest[label]
    return next(iter(manifest.values()), "")


def default_stream_url(flv: Dict[str, str], hls: Dict[str, str], fallback: str = "") -> str:
    """Room-level default URL: FULL_HD1, HD1, any FLV, the page default, then HLS."""
    return _preferred_url(flv) or fallback or _preferred_url(hls)


def viewer_count(room: Dict[str, Any]) -> str:
    """
    Current viewers as display text.

    The precise display_value wins when positive; otherwise the abbreviated
    counter (e.g. "12.3万") is passed through untouched.
    """
    display_value = _int(_dict(room, "room_view_stats").get("display_value"))
    if display_value > 0:
        return str(display_value)

    count_str = _str(_dict(room, "stats").get("user_count_str"))
    if count_str:
        return count_str

    user_count = _int(room.get("user_count"))
    return str(user_count) if user_count > 0 else ""


def total_viewer_count(room: Dict[str, Any]) -> str:
    stats = _dict(room, "stats")
    total = _str(stats.get("total_user_str"))
    if total:
        return total
    count = _int(stats.get("total_user"))
    return str(count) if count > 0 else ""


def category_id(partition: Dict[str, Any]) -> str:
    return f"{_int(partition.get('type'))}_{_str(partition.get('id_str'))}"


def sub_category_id(parent: Dict[str, Any], partition: Dict[str, Any]) -> str:
    return f"{category_id(parent)}_{category_id(partition)}"


# ============ Webcast room / owner ============

def _user_from_owner(owner: Dict[str, Any], room_id: str = "", douyin_id: str = "") -> User:
    follow_info = _dict(owner, "follow_info")
    return User(
        id=_str(owner.get("id_str") or owner.get("uid")),
        sec_uid=_str(owner.get("sec_uid")),
        douyin_id=_str(owner.get("display_id")) or douyin_id,
        nickname=_str(owner.get("nickname")),
        description=_str(owner.get("signature")),
        picture=_first(_dict(owner, "avatar_thumb").get("url_list")),
        picture_large=_first(_dict(owner, "avatar_large").get("url_list")),
        followers_count=_int(follow_info.get("follower_count")),
        following_count=_int(follow_info.get("following_count")),
        room_id=room_id,
    )


def _room_from_webcast(room: Dict[str, Any],
                       douyin_id: str = "",
                       owner: Optional[Dict[str, Any]] = None,
                       extra_flv: Optional[Dict[str, str]] = None,
                       extra_hls: Optional[Dict[str, str]] = None,
                       fallback_url: str = "",
                       category: Optional[Category] = None) -> Room:
    """Build a Room from the webcast room object shared by reflow and live pages."""
    stream = _dict(room, "stream_url")
    extra = _dict(stream, "extra")
    stats = _dict(room, "stats")
    room_id = _str(room.get("id_str") or room.get("id"))

    flv = _url_map(stream.get("flv_pull_url"))
    hls = _url_map(stream.get("hls_pull_url_map"))
    for label, url in (extra_flv or {}).items():
        flv.setdefault(label, url)
    for label, url in (extra_hls or {}).items():
        hls.setdefault(label, url)

    owner_data = owner if owner else _dict(room, "owner")
    user = _user_from_owner(owner_data, room_id, douyin_id) if owner_data else None

    if douyin_id:
        page_url = live_url(douyin_id)
    elif room_id:
        page_url = room_url(room_id)
    else:
        page_url = ""

    return Room(
        id=room_id,
        douyin_id=douyin_id,
        page_url=page_url,
        title=_str(room.get("title")),
        status_code=_int(room.get("status")),
        created_at=_timestamp(room.get("create_time")),
        cover_url=_first(_dict(room, "cover").get("url_list")),
        current_users_count=viewer_count(room),
        total_users_count=total_viewer_count(room),
        likes_count=_int(room.get("like_count")),
        new_followers_count=_int(stats.get("follow_count")),
        gifts_unique_visitor_count=_int(stats.get("gift_uv_count")),
        fans_count=_int(stats.get("fan_ticket")),
        stream_id=_str(stream.get("id_str")),
        stream_width=_int(extra.get("width")),
        stream_height=_int(extra.get("height")),
        flv_url_map=flv,
        hls_url_map=hls,
        stream_url=default_stream_url(flv, hls, fallback_url),
        user=user,
        category=category,
    )


# ============ Page shape: __INIT_PROPS__ (reflow pages) ============

def decode_init_props_room(payload: str) -> Optional[Room]:
    """
    Decode a reflow page payload.

    The primary shape is a map of page blocks, one holding room.id_str. When no
    block has it, a looser shape that only digs out the HLS manifest is tried.
    """
    data = _loads(payload)
    if not isinstance(data, dict):
        return None

    for block in data.values():
        room = _dict(block, "room")
        if _str(room.get("id_str")):
            return _room_from_webcast(room)

    for block in data.values():
        hls = _url_map(_dict(block, "room", "stream_url").get("hls_pull_url_map"))
        if hls:
            logger.debug("Room decoded with manifest-only fallback")
            return Room(hls_url_map=hls, stream_url=default_stream_url({}, hls))

    return None


# ============ Page shape: RENDER_DATA (category pages) ============

def _page_block(data: Any) -> Dict[str, Any]:
    block = _dict(data, CATEGORY_BLOCK_KEY)
    if block:
        return block
    if isinstance(data, dict):
        for value in data.values():
            if isinstance(value, dict) and ("partitionData" in value or "roomsData" in value):
                return value
    return {}


def decode_category_page(payload: str) -> Tuple[List[Category], List[Category]]:
    """
    Decode a category page.

    Returns:
        (top-level categories, sub-categories of the page's own category)
    """
    data = _loads(payload)

    top_level = []
    for item in _list(_dict(data, "app", "layoutData", "categoryTab"), "categoryData"):
        partition = _dict(item, "partition")
        if not _str(partition.get("id_str")):
            continue
        top_level.append(Category(id=category_id(partition), name=_str(partition.get("title"))))

    partition_data = _dict(_page_block(data), "partitionData")
    parent = _dict(partition_data, "partition")
    sub_categories = []
    for partition in _list(partition_data, "sub_partition"):
        if not isinstance(partition, dict) or not _str(partition.get("id_str")):
            continue
        sub_categories.append(Category(
            id=sub_category_id(parent, partition),
            name=_str(partition.get("title")),
        ))

    return top_level, sub_categories


def decode_room_listing(payload: str) -> List[Room]:
    """Decode the rooms listed on a category page."""
    block = _page_block(_loads(payload))
    partition_data = _dict(block, "partitionData")
    parent = _dict(partition_data, "partition")
    selected = _dict(partition_data, "select_partition")

    children = []
    if _str(selected.get("id_str")):
        children.append(Category(
            id=sub_category_id(parent, selected),
            name=_str(selected.get("title")),
        ))
    category = Category(id=category_id(parent), name=_str(parent.get("title")), categories=children)

    rooms = []
    for item in _list(block, "roomsData", "data"):
        if not isinstance(item, dict):
            continue
        room = _dict(item, "room")
        web_rid = _str(item.get("web_rid"))
        built = _room_from_webcast(
            room,
            douyin_id=web_rid,
            fallback_url=_str(item.get("streamSrc")),
            category=category,
        )
        user = built.user or User()
        rooms.append(built.model_copy(update={
            "cover_url": _str(item.get("cover")) or built.cover_url,
            "user": user.model_copy(update={"picture": _str(item.get("avatar")) or user.picture}),
        }))
    return rooms


# ============ Page shape: __pace_f hydration chunks (live pages) ============

def find_state(candidates: Iterable[str],
               predicate: Callable[[Dict[str, Any]], bool]) -> Optional[Dict[str, Any]]:
    """
    Find the first hydration state matching predicate.

    Only candidates that parse as a top-level JSON array are considered; their
    elements are scanned in order for an object with a matching "state".
    """
    for candidate in candidates:
        data = _loads(candidate)
        if not isinstance(data, list):
            continue
        for element in data:
            state = _dict(element, "state")
            if state and predicate(state):
                return state
    return None


def _has_room_info(state: Dict[str, Any]) -> bool:
    return bool(_dict(state, "roomStore", "roomInfo", "room"))


def _h264_manifests(state: Dict[str, Any]) -> Tuple[Dict[str, str], Dict[str, str]]:
    stream = _dict(state, "streamStore", "streamData", "H264_streamData", "stream")
    flv, hls = {}, {}
    for label, quality_data in stream.items():
        main = _dict(quality_data, "main")
        if _str(main.get("flv")):
            flv[label] = _str(main.get("flv"))
        if _str(main.get("hls")):
            hls[label] = _str(main.get("hls"))
    return flv, hls


def decode_live_room(candidates: Iterable[str], douyin_id: str = "") -> Room:
    """
    Decode a live page.

    Raises:
        NoRoomError: no candidate carries room info, i.e. no such room
    """
    state = find_state(candidates, _has_room_info)
    if state is None:
        raise NoRoomError(f"No room found for {douyin_id}" if douyin_id else "No room found")

    room_info = _dict(state, "roomStore", "roomInfo")
    web_rid = _str(room_info.get("web_rid")) or douyin_id
    anchor = _dict(room_info, "anchor") or _dict(room_info, "room", "owner")
    flv, hls = _h264_manifests(state)

    return _room_from_webcast(
        _dict(room_info, "room"),
        douyin_id=web_rid,
        owner=anchor,
        extra_flv=flv,
        extra_hls=hls,
    )


# ============ Profile API (JSON) ============

def decode_user_profile(data: Any, user_id: int = 0, device_id: Optional[int] = None) -> User:
    """
    Decode the profile endpoint response.

    Raises:
        CredentialRejectedError: the endpoint refused the device ID
        NoUserError: the reply carried no user
        InvalidPageDataError: the reply was not a JSON object
    """
    if not isinstance(data, dict):
        raise InvalidPageDataError("Profile response is not a JSON object")

    status = _int(data.get("status_code"))
    if status != 0:
        message = _str(data.get("status_msg")) or f"status_code {status}"
        raise CredentialRejectedError(f"Profile request rejected: {message}", device_id=device_id)

    u = _dict(data, "user")
    if not _str(u.get("nickname")):
        raise NoUserError(f"No user found for {user_id}" if user_id else "No user found")

    uid = str(user_id) if user_id else _str(u.get("uid"))
    sec_uid = _str(u.get("sec_uid"))
    room_id = _int(u.get("room_id") or u.get("room_id_str"))

    room = None
    if room_id:
        room = Room(
            id=room_id,
            page_url=room_url(str(room_id)),
            status_code=ROOM_STATUS_LIVE_ON if _int(u.get("live_status")) == 1 else 0,
        )

    return User(
        id=uid,
        sec_uid=sec_uid,
        douyin_id=_str(u.get("unique_id")) or _str(u.get("short_id")),
        nickname=_str(u.get("nickname")),
        description=_str(u.get("signature")),
        picture=_first(_dict(u, "avatar_thumb").get("url_list")),
        picture_large=_first(_dict(u, "avatar_larger").get("url_list")),
        country=_str(u.get("country")),
        province=_str(u.get("province")),
        city=_str(u.get("city")),
        location=_str(u.get("location")),
        videos_count=_int(u.get("aweme_count")),
        followers_count=_int(u.get("follower_count")),
        following_count=_int(u.get("following_count")),
        likes_count=_int(u.get("total_favorited")),
        room_id=str(room_id) if room_id else "",
        page_url=user_url(uid, sec_uid),
        room=room,
    )
