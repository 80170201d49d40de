import html
import logging
import time
from typing import Callable, List, Optional, Protocol

from services.post_db import ORDER_HOT, ORDER_NEWEST, Post
from shared.errors import InvalidArgument
from shared.loading_cache import LoadingCache
from shared.sensitive_filter import SensitiveFilter

logger = logging.getLogger("post_service")

# user_id 0 = homepage listing (no specific user)
NO_SPECIFIC_USER = 0

__all__ = ["PostService", "PostDataAccess", "NO_SPECIFIC_USER", "ORDER_HOT", "ORDER_NEWEST"]


class PostDataAccess(Protocol):
    async def select_posts(self, user_id: int, offset: int, limit: int, order_mode: int) -> List[Post]: ...
    async def select_post_rows(self, user_id: int) -> int: ...
    async def insert_post(self, post: Post) -> int: ...
    async def select_post_by_id(self, post_id: int) -> Optional[Post]: ...
    async def update_comment_count(self, post_id: int, comment_count: int) -> int: ...
    async def update_type(self, post_id: int, type_: int) -> int: ...
    async def update_status(self, post_id: int, status: int) -> int: ...
    async def update_score(self, post_id: int, score: float) -> int: ...


def parse_page_key(key: str):
    """'offset:limit' -> (offset, limit)"""
    if not key:
        raise InvalidArgument("Empty post list cache key")
    params = key.split(":")
    if len(params) != 2:
        raise InvalidArgument(f"Malformed post list cache key {key!r}, expected 'offset:limit'")
    try:
        return int(params[0]), int(params[1])
    except ValueError as e:
        raise InvalidArgument(f"Malformed post list cache key {key!r}: {e}") from e


class PostService:
    """
    Discussion posts with a hot-post cache.

    Only the homepage hot listing (no specific user, ORDER_HOT) goes through the
    caches; it is by far the most requested page. Everything else hits the
    database every time. There is no invalidation: cached pages may be stale for
    up to ``expire_seconds``.
    """

    def __init__(
        self,
        post_db: PostDataAccess,
        max_size: int,
        expire_seconds: int,
        sensitive_filter: Optional[SensitiveFilter] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.post_db = post_db
        self.sensitive_filter = sensitive_filter or SensitiveFilter()
        self.post_list_cache: LoadingCache[str, List[Post]] = LoadingCache(
            self._load_post_list, max_size, expire_seconds, name="post_list", clock=clock
        )
        self.post_rows_cache: LoadingCache[int, int] = LoadingCache(
            self._load_post_rows, max_size, expire_seconds, name="post_rows", clock=clock
        )

    # --------------- Cache loaders ---------------
    async def _load_post_list(self, key: str) -> List[Post]:
        offset, limit = parse_page_key(key)
        logger.debug("Loading [post list] from database...")
        return await self.post_db.select_posts(NO_SPECIFIC_USER, offset, limit, ORDER_HOT)

    async def _load_post_rows(self, key: int) -> int:
        logger.debug("Loading [post rows] from database...")
        return await self.post_db.select_post_rows(key)

    # --------------- Queries ---------------
    async def find_posts(self, user_id: int, offset: int, limit: int, order_mode: int) -> List[Post]:
        if user_id == NO_SPECIFIC_USER and order_mode == ORDER_HOT:
            return await self.post_list_cache.get(f"{offset}:{limit}")

        logger.debug("[post list] not cacheable, querying database...")
        return await self.post_db.select_posts(user_id, offset, limit, order_mode)

    async def find_post_rows(self, user_id: int) -> int:
        if user_id == NO_SPECIFIC_USER:
            return await self.post_rows_cache.get(user_id)

        logger.debug("[post rows] not cacheable, querying database...")
        return await self.post_db.select_post_rows(user_id)

    async def find_post_by_id(self, post_id: int) -> Optional[Post]:
        return await self.post_db.select_post_by_id(post_id)

    # --------------- Writes ---------------
    async def add_post(self, post: Optional[Post]) -> int:
        if post is None:
            raise InvalidArgument("Post must not be empty")

        # Escape HTML, then mask sensitive words
        post.title = self.sensitive_filter.filter(html.escape(post.title or ""))
        post.content = self.sensitive_filter.filter(html.escape(post.content or ""))

        return await self.post_db.insert_post(post)

    async def update_comment_count(self, post_id: int, comment_count: int) -> int:
        return await self.post_db.update_comment_count(post_id, comment_count)

    async def update_type(self, post_id: int, type_: int) -> int:
        return await self.post_db.update_type(post_id, type_)

    async def update_status(self, post_id: int, status: int) -> int:
        return await self.post_db.update_status(post_id, status)

    async def update_score(self, post_id: int, score: float) -> int:
        return await self.post_db.update_score(post_id, score)
