"""Tests for share-link and ID resolution."""

import pytest

from dylive.core.errors import NoUrlError, TooManyRedirectsError, TransportError
from dylive.core.identity import (
    UrlKind,
    classify_url,
    find_url,
    get_id_from_url,
    get_page_url,
    get_page_url_str,
    id_from_canonical_url,
    resolve_share_text,
)

from conftest import connection_error, redirect, run
from fixtures.sample_pages import (
    ROOM_ID,
    ROOM_PAGE,
    ROOM_SHORT_LINK,
    SHARE_TEXT,
    USER_ID,
    USER_PAGE,
    USER_SHORT_LINK,
)


class TestGetPageUrl:
    def test_share_message(self):
        assert get_page_url_str(SHARE_TEXT) == (USER_SHORT_LINK, USER_SHORT_LINK)

    def test_bare_share_code(self):
        assert get_page_url_str("e9oPjy7") == (USER_SHORT_LINK, "e9oPjy7")

    def test_short_codes_are_ignored(self):
        assert get_page_url_str("hi there") == ("", "")
        assert get_page_url("") == ""

    def test_find_url_prefers_canonical_urls(self):
        assert find_url(f"看看 {USER_PAGE} 吧") == USER_PAGE
        assert find_url(SHARE_TEXT) == USER_SHORT_LINK


class TestClassify:
    def test_kinds(self):
        assert classify_url(USER_PAGE) == UrlKind.USER_PROFILE
        assert classify_url(ROOM_PAGE) == UrlKind.ROOM_REFLOW
        assert classify_url(USER_SHORT_LINK) == UrlKind.SHORT_LINK
        assert classify_url("https://example.com/") == UrlKind.UNKNOWN

    def test_canonical_ids(self):
        assert id_from_canonical_url(USER_PAGE) == (USER_ID, 0)
        assert id_from_canonical_url(ROOM_PAGE) == (0, ROOM_ID)
        assert id_from_canonical_url("https://example.com/12345678901") == (0, 0)


class TestGetIdFromUrl:
    def test_canonical_urls_need_no_request(self, douyin):
        client = douyin.client()

        assert run(get_id_from_url(client, USER_PAGE)) == (USER_ID, 0)
        assert run(get_id_from_url(client, ROOM_PAGE)) == (0, ROOM_ID)
        assert douyin.requests == []

    def test_short_link_to_user(self, douyin):
        douyin.routes["v.douyin.com/e9oPjy7/"] = redirect(USER_PAGE)

        assert run(get_id_from_url(douyin.client(), USER_SHORT_LINK)) == (USER_ID, 0)

        request = douyin.requests[0]
        assert "iPhone" in request.headers["user-agent"]

    def test_short_link_to_room(self, douyin):
        douyin.routes["v.douyin.com/e9oSECC/"] = redirect(ROOM_PAGE)

        assert run(get_id_from_url(douyin.client(), ROOM_SHORT_LINK)) == (0, ROOM_ID)

    def test_chained_short_links(self, douyin):
        douyin.routes["v.douyin.com/e9oSECC/"] = redirect(USER_SHORT_LINK)
        douyin.routes["v.douyin.com/e9oPjy7/"] = redirect(USER_PAGE)

        assert run(get_id_from_url(douyin.client(), ROOM_SHORT_LINK)) == (USER_ID, 0)
        assert len(douyin.requests) == 2

    def test_redirect_loop(self, douyin):
        douyin.routes["v.douyin.com/e9oSECC/"] = redirect(ROOM_SHORT_LINK)

        with pytest.raises(TooManyRedirectsError):
            run(get_id_from_url(douyin.client(), ROOM_SHORT_LINK, max_hops=3))
        assert len(douyin.requests) == 3

    def test_no_redirect(self, douyin):
        douyin.routes["v.douyin.com/e9oSECC/"] = "<html>expired</html>"

        assert run(get_id_from_url(douyin.client(), ROOM_SHORT_LINK)) == (0, 0)

    def test_unknown_url(self, douyin):
        assert run(get_id_from_url(douyin.client(), "https://example.com/1234567890")) == (0, 0)

    def test_transport_failure(self, douyin):
        douyin.routes["v.douyin.com/e9oSECC/"] = connection_error

        with pytest.raises(TransportError):
            run(get_id_from_url(douyin.client(), ROOM_SHORT_LINK))


class TestResolveShareText:
    def test_share_text(self, douyin):
        douyin.routes["v.douyin.com/e9oPjy7/"] = redirect(USER_PAGE)

        assert run(resolve_share_text(douyin.client(), SHARE_TEXT)) == (USER_ID, 0)

    def test_no_url(self, douyin):
        with pytest.raises(NoUrlError):
            run(resolve_share_text(douyin.client(), "hi there"))
