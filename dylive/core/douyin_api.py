"""
dylive - Douyin API
Fetch users and rooms by numeric ID, reflow URL or Douyin handle.
"""

import logging
from typing import Optional

from .decoder import decode_init_props_room, decode_live_room, decode_room_listing, decode_user_profile
from .douyin_client import DouyinClient
from .errors import InvalidPageDataError, NoRoomError, NoUrlError
from .extraction_strategies import PageShape, extract_payloads, payload_texts
from .models import ROOM_REFLOW_PREFIX, Room, User, live_url, room_url

logger = logging.getLogger(__name__)

PROFILE_URL = "https://api3-core-c-lf.amemv.com/aweme/v1/user/profile/other/"
PROFILE_APP_ID = 1128


async def get_user_info(client: DouyinClient, user_id: int,
                        device_id: Optional[int] = None) -> User:
    """
    Get a user profile by numeric user ID.

    Raises:
        CredentialRejectedError: the device ID was refused; rotate it and retry
        NoUserError: the endpoint returned no user
        TransportError: the request failed
    """
    device_id = device_id if device_id is not None else client.settings.device_id
    params = {'device_id': device_id, 'aid': PROFILE_APP_ID, 'user_id': user_id}
    data = await client.get_json(PROFILE_URL, params=params)
    return decode_user_profile(data, user_id, device_id=device_id)


async def get_room_by_id(client: DouyinClient, room_id: int) -> Room:
    """Get a room by numeric room ID through its reflow page."""
    return await get_room_from_url(client, room_url(str(room_id)))


async def get_room_from_url(client: DouyinClient, url: str) -> Room:
    """
    Get room info from a reflow page URL.

    Raises:
        NoUrlError: url is empty
        InvalidPageDataError: the page has no __INIT_PROPS__ payload
        NoRoomError: the payload has no room
    """
    if not url:
        raise NoUrlError()

    html = await client.get_text(url, mobile=True)
    payloads = payload_texts(extract_payloads(html, [PageShape.INIT_PROPS]), PageShape.INIT_PROPS)
    if not payloads:
        raise InvalidPageDataError("Page shape not recognized", url=url)

    for payload in payloads:
        room = decode_init_props_room(payload)
        if room is not None:
            return room

    raise NoRoomError(url=url)


async def get_room(client: DouyinClient, douyin_id: str) -> Room:
    """
    Get the live room of a Douyin handle from its live page.

    Raises:
        InvalidPageDataError: no embedded payload at all (e.g. a challenge page)
        NoRoomError: the page carries no room, the handle does not exist
        TransportError: the request failed
    """
    douyin_id = douyin_id.strip()
    if not douyin_id:
        raise NoUrlError("Empty Douyin ID")

    url = live_url(douyin_id)
    html = await client.get_text(url, with_cookie=True)
    payloads = extract_payloads(html, [PageShape.PACE_FLIGHT, PageShape.RENDER_DATA])
    if not payloads:
        raise InvalidPageDataError("Page shape not recognized", url=url)

    flight = payload_texts(payloads, PageShape.PACE_FLIGHT)
    if flight:
        try:
            return decode_live_room(flight, douyin_id)
        except NoRoomError:
            logger.debug(f"{douyin_id}: no room in hydration chunks")

    # Older live pages embedded a single room listing entry in RENDER_DATA
    for payload in payload_texts(payloads, PageShape.RENDER_DATA):
        rooms = decode_room_listing(payload)
        if rooms:
            return rooms[0]

    raise NoRoomError(f"No room found for {douyin_id}", url=url)


async def get_user_by_name(client: DouyinClient, douyin_id: str) -> User:
    """Get a user by Douyin handle, with the user's room attached."""
    room = await get_room(client, douyin_id)
    user = room.user or User(douyin_id=douyin_id)
    if not user.douyin_id:
        user = user.model_copy(update={"douyin_id": douyin_id})
    return user.model_copy(update={"room": room.model_copy(update={"user": None})})


async def ensure_manifest(client: DouyinClient, room: Room) -> Room:
    """
    Return the room with its stream manifests populated.

    Rooms learned indirectly (e.g. from a user profile) carry only an ID, and
    live pages sometimes omit the streams of a running room. Manifests are
    then fetched from the reflow page; the live page is used only when the
    room ID is unknown.
    """
    if room.has_manifest:
        return room

    if room.id:
        fetched = await get_room_by_id(client, int(room.id))
    elif room.page_url.startswith(ROOM_REFLOW_PREFIX):
        fetched = await get_room_from_url(client, room.page_url)
    elif room.douyin_id:
        fetched = await get_room(client, room.douyin_id)
    else:
        raise NoRoomError("Room has neither ID nor page URL")

    if not fetched.has_manifest:
        logger.warning(f"No stream manifest found for room {room.id or room.douyin_id}")

    return fetched.model_copy(update={
        "douyin_id": fetched.douyin_id or room.douyin_id,
        "page_url": room.page_url or fetched.page_url,
        "user": fetched.user or room.user,
        "category": fetched.category or room.category,
    })
