"""Tests for the command line interface."""

import json

import pytest
from typer.testing import CliRunner

from dylive import __version__, cli
from dylive.config.settings_manager import SettingsManager

from conftest import json_reply, redirect
from fixtures.sample_pages import (
    FLV_URLS,
    H264_STREAMS,
    HANDLE,
    LIVE_HTML,
    NO_ROOM_HTML,
    REFLOW_HTML,
    ROOM_ID,
    ROOM_PAGE,
    SHARE_TEXT,
    USER_ID,
    USER_PAGE,
    category_page,
    listing_item,
    profile_response,
    render_data,
)

runner = CliRunner()


@pytest.fixture
def config_path(tmp_path):
    return tmp_path / "dylive.json"


@pytest.fixture
def invoke(douyin, config_path, monkeypatch):
    monkeypatch.setattr(cli, "DouyinClient", lambda settings: douyin.client(settings))

    def _invoke(*args, **kwargs):
        return runner.invoke(cli.app, ["-c", str(config_path), *args], **kwargs)

    return _invoke


class TestResolveCommand:
    def test_share_text(self, invoke, douyin):
        douyin.routes["v.douyin.com/e9oPjy7/"] = redirect(USER_PAGE)

        result = invoke("resolve", SHARE_TEXT)

        assert result.exit_code == 0
        assert result.stdout.strip() == f"user {USER_ID}"

    def test_json(self, invoke):
        result = invoke("resolve", "--json", ROOM_PAGE)

        assert result.exit_code == 0
        assert json.loads(result.stdout) == {"url": ROOM_PAGE, "user_id": "0", "room_id": str(ROOM_ID)}

    def test_stdin(self, invoke, douyin):
        douyin.routes["v.douyin.com/e9oPjy7/"] = redirect(USER_PAGE)

        result = invoke("resolve", input=SHARE_TEXT + "\n")

        assert result.exit_code == 0
        assert f"user {USER_ID}" in result.stdout

    def test_unresolvable_input_is_skipped(self, invoke):
        result = invoke("resolve", "hi there", ROOM_PAGE)

        assert result.exit_code == 0
        assert f"room {ROOM_ID}" in result.stdout

    def test_nothing_to_resolve(self, invoke):
        assert invoke("resolve", input="").exit_code == 1


PROFILE_ROUTE = "api3-core-c-lf.amemv.com/aweme/v1/user/profile/other/"
REFLOW_ROUTE = f"webcast.amemv.com/webcast/reflow/{ROOM_ID}"


class TestUserCommand:
    def test_live_user_prints_stream_url(self, invoke, douyin):
        douyin.routes[PROFILE_ROUTE] = json_reply(profile_response())
        douyin.routes[REFLOW_ROUTE] = REFLOW_HTML

        result = invoke("user", str(USER_ID))

        assert result.exit_code == 0
        assert result.stdout.strip().splitlines()[-1] == FLV_URLS["FULL_HD1"]

    def test_json_with_quality(self, invoke, douyin):
        douyin.routes[PROFILE_ROUTE] = json_reply(profile_response())
        douyin.routes[REFLOW_ROUTE] = REFLOW_HTML

        result = invoke("user", str(USER_ID), "-q", "hd", "--json")

        assert result.exit_code == 0
        profile = json.loads(result.stdout)
        assert profile["room"]["operating"]
        assert profile["room"]["stream_url"] == FLV_URLS["HD1"]

    def test_offline_user_skips_room_page(self, invoke, douyin):
        douyin.routes[PROFILE_ROUTE] = json_reply(profile_response(live_status=0))

        result = invoke("user", str(USER_ID), "--json")

        assert result.exit_code == 0
        assert not json.loads(result.stdout)["room"]["operating"]
        assert len(douyin.requests) == 1


class TestRoomCommand:
    def test_json(self, invoke, douyin):
        douyin.routes[f"live.douyin.com/{HANDLE}"] = LIVE_HTML

        result = invoke("room", HANDLE, "-q", "hd", "--json")

        assert result.exit_code == 0
        rooms = json.loads(result.stdout)
        assert rooms[0]["stream_url"] == H264_STREAMS["hd"]["main"]["flv"]
        assert rooms[0]["id"] == str(ROOM_ID)

    def test_missing_room_is_skipped(self, invoke, douyin):
        douyin.routes["live.douyin.com/gone"] = NO_ROOM_HTML
        douyin.routes[f"live.douyin.com/{HANDLE}"] = LIVE_HTML

        result = invoke("room", "gone", HANDLE, "--json")

        assert result.exit_code == 0
        assert [r["douyin_id"] for r in json.loads(result.stdout)] == [HANDLE]

    def test_by_id(self, invoke, douyin):
        douyin.routes[f"webcast.amemv.com/webcast/reflow/{ROOM_ID}"] = REFLOW_HTML

        result = invoke("room", "--by-id", str(ROOM_ID), "not-a-number", "-f", "hls", "-q", "uhd", "--json")

        assert result.exit_code == 0
        rooms = json.loads(result.stdout)
        assert len(rooms) == 1
        assert rooms[0]["stream_url"].endswith("_uhd.m3u8")


class TestCategoryCommands:
    def test_categories(self, invoke, douyin):
        for category_id in ("1_620", "4_103", "1_2"):
            douyin.routes[f"live.douyin.com/category/{category_id}"] = category_page(render_data(category_id))

        result = invoke("categories")

        assert result.exit_code == 0
        assert "王者荣耀" in result.stdout

    def test_rooms_remembers_category(self, invoke, douyin, config_path):
        selected = {"id_str": "1010102", "type": 1, "title": "王者荣耀"}
        douyin.routes["live.douyin.com/category/4_103_1_1010102"] = category_page(
            render_data("4_103", rooms=[listing_item()], selected=selected)
        )

        first = invoke("rooms", "4_103_1_1010102", "--json")
        again = invoke("rooms", "--json")

        assert first.exit_code == 0
        assert again.exit_code == 0
        settings = SettingsManager(config_path).settings
        assert settings.last_category_id == "4_103_1_1010102"
        assert settings.last_category_name == "王者荣耀"
        assert len(douyin.requests) == 2
        assert "Using remembered category 王者荣耀 (4_103_1_1010102)" in again.output

    def test_rooms_without_category(self, invoke):
        assert invoke("rooms").exit_code == 1


class TestWatchCommand:
    def test_bad_interval(self, invoke):
        result = invoke("watch", HANDLE, "--interval", "soon")

        assert result.exit_code != 0

    def test_missing_template_file(self, invoke, tmp_path):
        result = invoke("watch", HANDLE, "--run", f"@{tmp_path / 'missing.txt'}")

        assert result.exit_code != 0

    def test_interrupt_stops_started_commands(self, invoke, monkeypatch):
        stopped = []

        class RecordingRunner:
            def __init__(self, template):
                self.template = template

            def stop_all(self):
                stopped.append(self.template)

        def interrupted(settings, func):
            raise KeyboardInterrupt

        monkeypatch.setattr(cli, "CommandRunner", RecordingRunner)
        monkeypatch.setattr(cli, "_run", interrupted)

        result = invoke("watch", HANDLE, "--run", "mpv {stream_url}")

        assert result.exit_code == 0
        assert stopped == ["mpv {stream_url}"]


def test_version():
    result = runner.invoke(cli.app, ["--version"])

    assert result.exit_code == 0
    assert __version__ in result.stdout
