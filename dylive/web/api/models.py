"""
dylive - API Models
Request/Response schemas for API endpoints.
"""

from typing import List

from pydantic import BaseModel, Field

from ...core.models import Category, Room


class ResolveRequest(BaseModel):
    """Free-form share text or a URL to resolve."""
    text: str = Field(..., description="Share message, short link or canonical URL")


class ResolveResponse(BaseModel):
    url: str = ""
    user_id: str = "0"
    room_id: str = "0"


class RoomResponse(BaseModel):
    """A room plus the URL picked for the requested quality."""
    room: Room
    quality: str = ""
    stream_format: str = "flv"
    stream_url: str = ""


class CategoriesResponse(BaseModel):
    categories: List[Category] = Field(default_factory=list)


class RoomsResponse(BaseModel):
    category_id: str
    rooms: List[Room] = Field(default_factory=list)

