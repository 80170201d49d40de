"""
Usage analytics on Redis.

- UV (unique visitors): one HyperLogLog per day, ranges are PFMERGEd -> approximate
  (~0.81 % standard error), fine for an unbounded id space like IP addresses
- DAU (active users): one bitmap per day, bit = user id, ranges are BITOP OR-ed ->
  exact; "active on at least one day in the range", not a sum of dailies
"""
import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Callable, Iterator, List, Optional

import redis.asyncio as redis

from shared.errors import InvalidArgument
from shared.keys import K_DAU, K_DAU_RANGE, K_UV, K_UV_RANGE, day_key
from shared.redis_client import store_call

logger = logging.getLogger("data_service")

# Redis bitmaps are capped at 512 MB, so bit offsets must stay below 2**32
MAX_USER_ID = 2 ** 32 - 1


@dataclass(frozen=True)
class DateRange:
    start: date
    end: date

    @classmethod
    def of(cls, start: Optional[date], end: Optional[date]) -> "DateRange":
        if start is None or end is None:
            raise InvalidArgument("Start and end date must not be empty")
        if start > end:
            raise InvalidArgument(f"Invalid date range: {start} is after {end}")
        return cls(start, end)

    def days(self) -> Iterator[date]:
        curr = self.start
        while curr <= self.end:
            yield curr
            curr += timedelta(days=1)


class DataService:
    def __init__(self, r: redis.Redis, today: Callable[[], date] = date.today):
        self.r = r
        self._today = today

    # --------------- UV ---------------
    async def record_visit(self, visitor_id: str, day: Optional[date] = None) -> None:
        """Add visitor (e.g. an IP address) to the day's HyperLogLog."""
        k = K_UV(day_key(day or self._today()))
        async with store_call("PFADD"):
            await self.r.pfadd(k, visitor_id)

    async def count_unique_visitors(self, start: Optional[date], end: Optional[date]) -> int:
        rng = DateRange.of(start, end)
        keys = [K_UV(day_key(d)) for d in rng.days()]
        range_key = K_UV_RANGE(day_key(rng.start), day_key(rng.end))

        # Merge is recomputed on every query, the range key is just scratch space
        pipe = self.r.pipeline(transaction=False)
        pipe.pfmerge(range_key, *keys)
        pipe.pfcount(range_key)
        async with store_call("PFMERGE/PFCOUNT"):
            _, uv = await pipe.execute()
        logger.debug(f"UV {rng.start}..{rng.end} over {len(keys)} days: {uv}")
        return int(uv)

    # --------------- DAU ---------------
    async def record_active_user(self, user_id: int, day: Optional[date] = None) -> None:
        """Set bit ``user_id`` in the day's bitmap. The id is the bit offset."""
        if isinstance(user_id, bool) or not isinstance(user_id, int) or not 0 <= user_id <= MAX_USER_ID:
            raise InvalidArgument(f"User id must be an integer in [0, {MAX_USER_ID}], got {user_id!r}")
        k = K_DAU(day_key(day or self._today()))
        async with store_call("SETBIT"):
            await self.r.setbit(k, user_id, 1)

    async def count_active_users(self, start: Optional[date], end: Optional[date]) -> int:
        rng = DateRange.of(start, end)
        keys: List[str] = [K_DAU(day_key(d)) for d in rng.days()]
        range_key = K_DAU_RANGE(day_key(rng.start), day_key(rng.end))

        pipe = self.r.pipeline(transaction=False)
        pipe.bitop("OR", range_key, *keys)
        pipe.bitcount(range_key)
        async with store_call("BITOP/BITCOUNT"):
            _, dau = await pipe.execute()
        logger.debug(f"DAU {rng.start}..{rng.end} over {len(keys)} days: {dau}")
        return int(dau)
