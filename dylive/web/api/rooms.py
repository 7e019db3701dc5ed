"""
dylive - Rooms API
Endpoints for room lookup, category browsing and share-link resolution.
"""

import logging

from fastapi import APIRouter, Depends, Request

from ...core.categories import get_categories, get_rooms_by_category
from ...core.douyin_api import ensure_manifest, get_room
from ...core.douyin_client import DouyinClient
from ...core.errors import NoUrlError
from ...core.identity import find_url, get_id_from_url
from ...core.stream_resolver import StreamFormat, normalize_quality
from .models import CategoriesResponse, ResolveRequest, ResolveResponse, RoomResponse, RoomsResponse

logger = logging.getLogger(__name__)
router = APIRouter()


def get_client(request: Request) -> DouyinClient:
    """Dependency to get the shared client."""
    return request.app.state.client


@router.get("/rooms/{douyin_id}", response_model=RoomResponse)
async def read_room(
    douyin_id: str,
    quality: str = "",
    format: str = "flv",
    client: DouyinClient = Depends(get_client),
):
    """Get the live room of a Douyin handle and pick a playback URL."""
    logger.info(f"📡 Room request: {douyin_id}")

    room = await get_room(client, douyin_id)
    if room.operating and not room.has_manifest:
        room = await ensure_manifest(client, room)

    quality = normalize_quality(quality or client.settings.quality)
    stream_format = StreamFormat.parse(format)
    return RoomResponse(
        room=room,
        quality=quality,
        stream_format=stream_format.value,
        stream_url=room.url_for(quality, stream_format),
    )


@router.get("/categories", response_model=CategoriesResponse)
async def read_categories(client: DouyinClient = Depends(get_client)):
    """Get the two-level category tree."""
    return CategoriesResponse(categories=await get_categories(client))


@router.get("/categories/{category_id}/rooms", response_model=RoomsResponse)
async def read_category_rooms(category_id: str, client: DouyinClient = Depends(get_client)):
    """Get the top rooms of a category."""
    rooms = await get_rooms_by_category(client, category_id)
    return RoomsResponse(category_id=category_id, rooms=rooms)


@router.post("/resolve", response_model=ResolveResponse)
async def resolve(request: ResolveRequest, client: DouyinClient = Depends(get_client)):
    """Resolve share text to a user ID or a room ID."""
    url = find_url(request.text)
    if not url:
        raise NoUrlError(f"No URL found in {request.text!r}")

    user_id, room_id = await get_id_from_url(client, url)
    return ResolveResponse(url=url, user_id=str(user_id), room_id=str(room_id))
