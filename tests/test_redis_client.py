import pytest
import redis.asyncio as redis
from redis.exceptions import ResponseError, TimeoutError as RedisTimeoutError

from config import config
from shared.errors import StoreUnavailable
from shared.redis_client import create_redis, store_call
from web.backend.main import build_app


def test_create_redis_uses_own_pool():
    a = create_redis("redis://localhost:6379/0")
    b = create_redis("redis://localhost:6379/0")

    assert isinstance(a, redis.Redis)
    assert a.connection_pool is not b.connection_pool
    assert a.connection_pool.connection_kwargs["decode_responses"] is True


@pytest.mark.asyncio
async def test_store_call_wraps_timeouts():
    with pytest.raises(StoreUnavailable) as exc_info:
        async with store_call("PFCOUNT"):
            raise RedisTimeoutError("Timeout reading from socket")
    assert isinstance(exc_info.value.__cause__, RedisTimeoutError)


@pytest.mark.asyncio
async def test_store_call_leaves_other_errors_alone():
    with pytest.raises(ResponseError):
        async with store_call("SETBIT"):
            raise ResponseError("bit offset is not an integer or out of range")


def test_build_app_wires_config(tmp_path, monkeypatch):
    monkeypatch.setattr(config, "POSTS_DB_PATH", str(tmp_path / "community.db"))
    monkeypatch.setattr(config, "SENSITIVE_WORDS_PATH", str(tmp_path / "missing.txt"))
    monkeypatch.setattr(config, "CACHE_POSTS_MAX_SIZE", 5)

    app = build_app()

    assert app.state.post_service.post_list_cache.max_size == 5
    assert app.state.post_service.post_rows_cache.expire_seconds == config.CACHE_POSTS_EXPIRE_SECONDS
    assert app.state.post_db.db_path == str(tmp_path / "community.db")
