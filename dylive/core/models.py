"""
dylive - Models
Read-only snapshots of users, rooms and categories decoded from Douyin pages.
"""

from datetime import datetime
from typing import Annotated, Any, Dict, List, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, computed_field

from .stream_resolver import StreamFormat, resolve_stream_url

# Room status codes as reported by the platform
ROOM_STATUS_NOT_STARTED = 0
ROOM_STATUS_LIVE_ON = 2
ROOM_STATUS_ENDED = 4

USER_PAGE_PREFIX = "https://www.iesdouyin.com/share/user/"
ROOM_REFLOW_PREFIX = "https://webcast.amemv.com/webcast/reflow/"
LIVE_PAGE_PREFIX = "https://live.douyin.com/"


def _id_to_str(value: Any) -> str:
    # Large IDs travel as JSON strings; keep them that way.
    if value is None:
        return ""
    if isinstance(value, bool):
        return str(int(value))
    return str(value)


IdStr = Annotated[str, BeforeValidator(_id_to_str)]


def user_url(user_id: str, sec_uid: str = "") -> str:
    return f"{USER_PAGE_PREFIX}{user_id}?sec_uid={sec_uid}"


def room_url(room_id: str) -> str:
    return f"{ROOM_REFLOW_PREFIX}{room_id}"


def live_url(douyin_id: str) -> str:
    return f"{LIVE_PAGE_PREFIX}{douyin_id}"


class Category(BaseModel):
    """A live category; leaf categories are used to fetch room listings."""
    model_config = ConfigDict(frozen=True)

    id: str = ""
    name: str = ""
    categories: List["Category"] = Field(default_factory=list)

    @property
    def is_leaf(self) -> bool:
        return not self.categories


class User(BaseModel):
    """
    A Douyin account.

    The numeric ``id`` is reissued by the platform from time to time; ``sec_uid``
    stays constant for the lifetime of the account. Use ``key`` to track users.
    """
    model_config = ConfigDict(frozen=True)

    id: IdStr = ""
    sec_uid: str = ""
    douyin_id: str = ""
    nickname: str = ""
    description: str = ""
    picture: str = ""
    picture_large: str = ""
    country: str = ""
    province: str = ""
    city: str = ""
    location: str = ""
    videos_count: int = 0
    followers_count: int = 0
    following_count: int = 0
    likes_count: int = 0
    room_id: IdStr = ""
    page_url: str = ""
    room: Optional["Room"] = None

    @property
    def key(self) -> str:
        """Durable identity: sec_uid when known, else the numeric ID."""
        return self.sec_uid or self.id


class Room(BaseModel):
    """A live room and its stream manifests."""
    model_config = ConfigDict(frozen=True)

    id: IdStr = ""
    douyin_id: str = ""
    page_url: str = ""
    title: str = ""
    status_code: int = ROOM_STATUS_NOT_STARTED
    created_at: Optional[datetime] = None
    cover_url: str = ""

    current_users_count: str = ""
    total_users_count: str = ""
    likes_count: int = 0
    new_followers_count: int = 0
    gifts_unique_visitor_count: int = 0
    fans_count: int = 0

    stream_id: IdStr = ""
    stream_width: int = 0
    stream_height: int = 0
    flv_url_map: Dict[str, str] = Field(default_factory=dict)
    hls_url_map: Dict[str, str] = Field(default_factory=dict)
    stream_url: str = ""

    user: Optional[User] = None
    category: Optional[Category] = None

    @computed_field
    @property
    def operating(self) -> bool:
        return self.status_code == ROOM_STATUS_LIVE_ON

    @property
    def has_manifest(self) -> bool:
        return bool(self.flv_url_map or self.hls_url_map)

    def flv_url_for_quality(self, quality: str) -> str:
        return resolve_stream_url(self.flv_url_map, quality, self.stream_url)

    def hls_url_for_quality(self, quality: str) -> str:
        return resolve_stream_url(self.hls_url_map, quality, self.stream_url)

    def url_for(self, quality: str, stream_format: StreamFormat = StreamFormat.FLV) -> str:
        """Resolve a playback URL in the requested protocol family."""
        if stream_format == StreamFormat.HLS:
            return self.hls_url_for_quality(quality)
        return self.flv_url_for_quality(quality)


Category.model_rebuild()
User.model_rebuild()
Room.model_rebuild()
