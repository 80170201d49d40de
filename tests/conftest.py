from collections import defaultdict
from datetime import date

import pytest
import pytest_asyncio
from redis.exceptions import ConnectionError as RedisConnectionError, ResponseError

from services.post_db import Post, PostDB


class FakeRedis:
    """
    In-memory stand-in for the handful of Redis commands the services use.
    HyperLogLogs are exact sets here, bitmaps are sets of bit offsets.
    """

    def __init__(self):
        self.hll = defaultdict(set)
        self.bits = defaultdict(set)
        self.calls = []
        self.closed = False

    async def ping(self):
        self.calls.append(("ping",))
        return True

    async def pfadd(self, key, *values):
        self.calls.append(("pfadd", key) + values)
        before = len(self.hll[key])
        self.hll[key].update(values)
        return int(len(self.hll[key]) != before)

    async def pfmerge(self, dest, *sources):
        self.calls.append(("pfmerge", dest) + sources)
        merged = set(self.hll.get(dest, set()))
        for s in sources:
            merged |= self.hll.get(s, set())
        self.hll[dest] = merged
        return True

    async def pfcount(self, *keys):
        self.calls.append(("pfcount",) + keys)
        merged = set()
        for k in keys:
            merged |= self.hll.get(k, set())
        return len(merged)

    async def setbit(self, key, offset, value):
        self.calls.append(("setbit", key, offset, value))
        if not 0 <= offset < 2 ** 32:
            raise ResponseError("bit offset is not an integer or out of range")
        old = int(offset in self.bits[key])
        if value:
            self.bits[key].add(offset)
        else:
            self.bits[key].discard(offset)
        return old

    async def bitop(self, operation, dest, *keys):
        self.calls.append(("bitop", operation, dest) + keys)
        assert operation.upper() == "OR"
        merged = set()
        for k in keys:
            merged |= self.bits.get(k, set())
        self.bits[dest] = merged
        return (max(merged) // 8 + 1) if merged else 0

    async def bitcount(self, key):
        self.calls.append(("bitcount", key))
        return len(self.bits.get(key, set()))

    def pipeline(self, transaction=True):
        return FakePipeline(self)

    async def aclose(self):
        self.closed = True


class FakePipeline:
    def __init__(self, r):
        self.r = r
        self.queued = []

    def __getattr__(self, name):
        cmd = getattr(self.r, name)

        def queue(*args, **kwargs):
            self.queued.append((cmd, args, kwargs))
            return self

        return queue

    async def execute(self):
        results = [await cmd(*a, **kw) for cmd, a, kw in self.queued]
        self.queued = []
        return results


class DownRedis(FakeRedis):
    """Every command fails as if the server were unreachable."""

    def __getattribute__(self, name):
        if name in ("ping", "pfadd", "pfmerge", "pfcount", "setbit", "bitop", "bitcount"):
            async def fail(*args, **kwargs):
                raise RedisConnectionError("Error 111 connecting to localhost:6379. Connection refused.")
            return fail
        return super().__getattribute__(name)


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class Today:
    def __init__(self, d: date):
        self.d = d

    def __call__(self) -> date:
        return self.d


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def down_redis():
    return DownRedis()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def today():
    return Today(date(2023, 5, 23))


@pytest_asyncio.fixture
async def post_db(tmp_path):
    db = PostDB(str(tmp_path / "community.db"))
    await db.init()
    return db


@pytest_asyncio.fixture
async def seeded_post_db(post_db):
    # user 101: two posts, user 102: two posts (one pinned), user 103: one blocked post
    await post_db.insert_post(Post(user_id=101, title="low", content="a", score=1.0, create_time="2023-05-01T10:00:00"))
    await post_db.insert_post(Post(user_id=101, title="high", content="b", score=9.0, create_time="2023-05-02T10:00:00"))
    await post_db.insert_post(Post(user_id=102, title="newest", content="c", score=0.5, create_time="2023-05-03T10:00:00"))
    await post_db.insert_post(Post(user_id=102, title="pinned", content="d", type=1, score=0.0, create_time="2023-04-01T10:00:00"))
    await post_db.insert_post(Post(user_id=103, title="blocked", content="e", status=2, score=99.0, create_time="2023-05-04T10:00:00"))
    return post_db
