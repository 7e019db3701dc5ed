"""Tests for fetching users and rooms."""

import pytest

from dylive.core.douyin_api import (
    ensure_manifest,
    get_room,
    get_room_by_id,
    get_room_from_url,
    get_user_by_name,
    get_user_info,
)
from dylive.core.errors import (
    CredentialRejectedError,
    InvalidPageDataError,
    NoRoomError,
    NoUrlError,
    NoUserError,
    TransportError,
)
from dylive.core.models import Room

from conftest import connection_error, html, json_reply, run
from fixtures.sample_pages import (
    CHALLENGE_HTML,
    FLV_URLS,
    H264_STREAMS,
    HANDLE,
    LIVE_HTML,
    NICKNAME,
    NO_ROOM_HTML,
    OFFLINE_HTML,
    REFLOW_HLS_ONLY_HTML,
    REFLOW_HTML,
    REFLOW_NO_ROOM_HTML,
    ROOM_ID,
    SEC_UID,
    USER_ID,
    category_page,
    listing_item,
    live_state,
    pace_flight_page,
    profile_response,
    render_data,
)

PROFILE_ROUTE = "api3-core-c-lf.amemv.com/aweme/v1/user/profile/other/"
REFLOW_ROUTE = f"webcast.amemv.com/webcast/reflow/{ROOM_ID}"
LIVE_ROUTE = f"live.douyin.com/{HANDLE}"


class TestGetUserInfo:
    def test_user(self, douyin, settings):
        douyin.routes[PROFILE_ROUTE] = json_reply(profile_response())

        user = run(get_user_info(douyin.client(settings), USER_ID))

        assert user.nickname == NICKNAME
        assert user.room.id == str(ROOM_ID)
        params = douyin.requests[0].url.params
        assert params["user_id"] == str(USER_ID)
        assert params["aid"] == "1128"
        assert params["device_id"] == str(settings.device_id)

    def test_explicit_device_id(self, douyin):
        douyin.routes[PROFILE_ROUTE] = json_reply(profile_response())

        run(get_user_info(douyin.client(), USER_ID, device_id=123))

        assert douyin.requests[0].url.params["device_id"] == "123"

    def test_rejected_device(self, douyin):
        douyin.routes[PROFILE_ROUTE] = json_reply(profile_response(status_code=2190))

        with pytest.raises(CredentialRejectedError):
            run(get_user_info(douyin.client(), USER_ID))

    def test_no_user(self, douyin):
        douyin.routes[PROFILE_ROUTE] = json_reply({"status_code": 0})

        with pytest.raises(NoUserError):
            run(get_user_info(douyin.client(), USER_ID))

    def test_not_json(self, douyin):
        douyin.routes[PROFILE_ROUTE] = html("<html>busy</html>")

        with pytest.raises(InvalidPageDataError):
            run(get_user_info(douyin.client(), USER_ID))

    def test_server_error(self, douyin):
        douyin.routes[PROFILE_ROUTE] = html("oops", status_code=503)

        with pytest.raises(TransportError) as exc_info:
            run(get_user_info(douyin.client(), USER_ID))
        assert exc_info.value.status_code == 503


class TestGetRoomById:
    def test_room(self, douyin):
        douyin.routes[REFLOW_ROUTE] = REFLOW_HTML

        room = run(get_room_by_id(douyin.client(), ROOM_ID))

        assert room.id == str(ROOM_ID)
        assert room.stream_url == FLV_URLS["FULL_HD1"]

    def test_hls_only_page(self, douyin):
        douyin.routes[REFLOW_ROUTE] = REFLOW_HLS_ONLY_HTML

        room = run(get_room_by_id(douyin.client(), ROOM_ID))

        assert room.flv_url_map == {}
        assert room.stream_url.endswith("_uhd.m3u8")

    def test_no_room(self, douyin):
        douyin.routes[REFLOW_ROUTE] = REFLOW_NO_ROOM_HTML

        with pytest.raises(NoRoomError):
            run(get_room_by_id(douyin.client(), ROOM_ID))

    def test_unrecognized_page(self, douyin):
        douyin.routes[REFLOW_ROUTE] = CHALLENGE_HTML

        with pytest.raises(InvalidPageDataError):
            run(get_room_by_id(douyin.client(), ROOM_ID))

    def test_empty_url(self, douyin):
        with pytest.raises(NoUrlError):
            run(get_room_from_url(douyin.client(), ""))


class TestGetRoom:
    def test_live_room(self, douyin):
        douyin.routes[LIVE_ROUTE] = LIVE_HTML

        room = run(get_room(douyin.client(), HANDLE))

        assert room.operating
        assert room.douyin_id == HANDLE
        assert room.url_for("hd") == H264_STREAMS["hd"]["main"]["flv"]
        assert room.user.sec_uid == SEC_UID

    def test_sends_nonce_cookie(self, douyin, settings):
        douyin.routes[LIVE_ROUTE] = LIVE_HTML

        run(get_room(douyin.client(settings), HANDLE))

        assert douyin.requests[0].headers["cookie"] == f"__ac_nonce={settings.ac_nonce}"

    def test_offline_room(self, douyin):
        douyin.routes[LIVE_ROUTE] = OFFLINE_HTML

        room = run(get_room(douyin.client(), HANDLE))

        assert not room.operating
        assert room.id == str(ROOM_ID)

    def test_render_data_listing(self, douyin):
        douyin.routes[LIVE_ROUTE] = category_page(render_data("4_103", rooms=[listing_item()]))

        room = run(get_room(douyin.client(), HANDLE))

        assert room.douyin_id == HANDLE
        assert room.stream_url == FLV_URLS["FULL_HD1"]

    def test_no_room(self, douyin):
        douyin.routes[LIVE_ROUTE] = NO_ROOM_HTML

        with pytest.raises(NoRoomError):
            run(get_room(douyin.client(), HANDLE))

    def test_challenge_page(self, douyin):
        douyin.routes[LIVE_ROUTE] = CHALLENGE_HTML

        with pytest.raises(InvalidPageDataError):
            run(get_room(douyin.client(), HANDLE))

    def test_connection_failure(self, douyin):
        douyin.routes[LIVE_ROUTE] = connection_error

        with pytest.raises(TransportError):
            run(get_room(douyin.client(), HANDLE))

    def test_blank_handle(self, douyin):
        with pytest.raises(NoUrlError):
            run(get_room(douyin.client(), "  "))


class TestGetUserByName:
    def test_user_with_room(self, douyin):
        douyin.routes[LIVE_ROUTE] = LIVE_HTML

        user = run(get_user_by_name(douyin.client(), HANDLE))

        assert user.nickname == NICKNAME
        assert user.douyin_id == HANDLE
        assert user.room.id == str(ROOM_ID)
        assert user.room.user is None


class TestEnsureManifest:
    def test_room_with_manifest_is_unchanged(self, douyin):
        room = Room(id="1", flv_url_map={"HD1": "https://x/1_hd.flv"})

        assert run(ensure_manifest(douyin.client(), room)) is room
        assert douyin.requests == []

    def test_fetches_reflow_page(self, douyin):
        douyin.routes[PROFILE_ROUTE] = json_reply(profile_response())
        douyin.routes[REFLOW_ROUTE] = REFLOW_HTML
        client = douyin.client()

        async def fetch():
            user = await get_user_info(client, USER_ID)
            return await ensure_manifest(client, user.room)

        room = run(fetch())

        assert room.has_manifest
        assert room.flv_url_for_quality("uhd") == FLV_URLS["FULL_HD1"]

    def test_live_room_without_streams_uses_reflow_page(self, douyin):
        douyin.routes[LIVE_ROUTE] = pace_flight_page([live_state(streams={})])
        douyin.routes[REFLOW_ROUTE] = REFLOW_HTML
        client = douyin.client()

        async def fetch():
            room = await get_room(client, HANDLE)
            assert room.operating and not room.has_manifest
            return await ensure_manifest(client, room)

        room = run(fetch())

        assert room.has_manifest
        assert room.douyin_id == HANDLE
        assert room.url_for("hd") == FLV_URLS["HD1"]
        assert [r.url.host for r in douyin.requests] == ["live.douyin.com", "webcast.amemv.com"]

    def test_fetches_live_page_by_handle(self, douyin):
        douyin.routes[LIVE_ROUTE] = LIVE_HTML

        room = run(ensure_manifest(douyin.client(), Room(douyin_id=HANDLE)))

        assert room.has_manifest

    def test_room_without_any_id(self, douyin):
        with pytest.raises(NoRoomError):
            run(ensure_manifest(douyin.client(), Room()))
