"""
dylive - Categories
Builds the two-level category tree and fetches room listings per category.
"""

import asyncio
import logging
from typing import List, Tuple

from .decoder import decode_category_page, decode_room_listing
from .douyin_client import DouyinClient
from .errors import InvalidPageDataError
from .extraction_strategies import PageShape, extract_payloads, payload_texts
from .models import Category, Room

logger = logging.getLogger(__name__)

ROOT_CATEGORY_ID = "1_620"
CATEGORY_URL = "https://live.douyin.com/category/"


async def get_render_data(client: DouyinClient, category_id: str) -> str:
    """
    Fetch a category page and return its RENDER_DATA payload.

    Raises:
        InvalidPageDataError: the page has no RENDER_DATA element
        TransportError: the request failed
    """
    url = CATEGORY_URL + category_id
    html = await client.get_text(url, mobile=True)
    payloads = payload_texts(extract_payloads(html, [PageShape.RENDER_DATA]), PageShape.RENDER_DATA)
    if not payloads:
        raise InvalidPageDataError("Page shape not recognized", url=url)
    return payloads[0]


async def get_category_page(client: DouyinClient, category_id: str) -> Tuple[List[Category], List[Category]]:
    """(top-level categories, sub-categories of category_id)"""
    return decode_category_page(await get_render_data(client, category_id))


async def _get_sub_categories(client: DouyinClient, category: Category) -> Category:
    try:
        _, sub_categories = await get_category_page(client, category.id)
    except Exception as e:
        # One failed branch leaves that category empty; the tree is still built.
        logger.warning(f"Sub-categories of {category.name} ({category.id}) unavailable: {e}")
        return category
    return category.model_copy(update={"categories": sub_categories})


async def get_categories(client: DouyinClient) -> List[Category]:
    """
    Get all live categories with their sub-categories.

    The root page lists every top-level category plus its own sub-categories;
    the other top-level pages are then fetched concurrently.

    Raises:
        DyliveError: the root page could not be fetched or decoded
    """
    top_level, root_subs = await get_category_page(client, ROOT_CATEGORY_ID)

    tasks = []
    for category in top_level:
        if category.id == ROOT_CATEGORY_ID:
            tasks.append(_with_children(category, root_subs))
        else:
            tasks.append(_get_sub_categories(client, category))

    categories = list(await asyncio.gather(*tasks))
    logger.info(f"Fetched {len(categories)} categories")
    return categories


async def _with_children(category: Category, children: List[Category]) -> Category:
    return category.model_copy(update={"categories": children})


async def get_rooms_by_category(client: DouyinClient, category_id: str) -> List[Room]:
    """Get the top rooms (about 15) of a category."""
    rooms = decode_room_listing(await get_render_data(client, category_id))
    logger.debug(f"{len(rooms)} rooms in {category_id}")
    return rooms
