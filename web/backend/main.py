import logging
from contextlib import asynccontextmanager
from datetime import date
from typing import Optional

import aiosqlite
import redis.asyncio as redis
import uvicorn
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from config import config
from services.data_service import MAX_USER_ID, DataService
from services.post_db import Post, PostDB
from services.post_service import NO_SPECIFIC_USER, ORDER_HOT, PostService
from shared.errors import InvalidArgument, StoreUnavailable
from shared.redis_client import create_redis, ping
from shared.sensitive_filter import SensitiveFilter

logger = logging.getLogger("web")


class PostIn(BaseModel):
    user_id: int
    title: str
    content: str


async def track_usage(request: Request):
    """Record every request: client host -> UV, X-User-Id header -> DAU."""
    # Health checks should not count as traffic
    if request.url.path.startswith("/actuator"):
        return

    data_service: DataService = request.app.state.data_service
    if request.client and request.client.host:
        await data_service.record_visit(request.client.host)

    user_id = request.headers.get("X-User-Id")
    # Headers that are not a valid bit offset are ignored
    if user_id and user_id.isdecimal() and int(user_id) <= MAX_USER_ID:
        await data_service.record_active_user(int(user_id))


def create_app(
    post_service: PostService,
    data_service: DataService,
    post_db: PostDB,
    r: redis.Redis,
) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await post_db.init()
        yield
        await r.aclose()

    app = FastAPI(title="Community Data", lifespan=lifespan, dependencies=[Depends(track_usage)])
    app.state.post_service = post_service
    app.state.data_service = data_service
    app.state.post_db = post_db
    app.state.redis = r

    @app.exception_handler(InvalidArgument)
    async def invalid_argument_handler(request: Request, exc: InvalidArgument):
        return JSONResponse(status_code=400, content={"code": 1, "msg": str(exc)})

    @app.exception_handler(StoreUnavailable)
    async def store_unavailable_handler(request: Request, exc: StoreUnavailable):
        return JSONResponse(status_code=503, content={"code": 1, "msg": str(exc)})

    # --------------- Analytics ---------------
    @app.get("/data/uv")
    async def data_uv(start: Optional[date] = None, end: Optional[date] = None):
        uv = await data_service.count_unique_visitors(start, end)
        return {"start": start, "end": end, "uv": uv}

    @app.get("/data/dau")
    async def data_dau(start: Optional[date] = None, end: Optional[date] = None):
        dau = await data_service.count_active_users(start, end)
        return {"start": start, "end": end, "dau": dau}

    # --------------- Posts ---------------
    @app.get("/posts")
    async def list_posts(user_id: int = NO_SPECIFIC_USER, offset: int = 0, limit: int = 10, order_mode: int = ORDER_HOT):
        if offset < 0 or limit <= 0:
            raise HTTPException(status_code=400, detail="offset must be >= 0 and limit > 0")
        posts = await post_service.find_posts(user_id, offset, limit, order_mode)
        rows = await post_service.find_post_rows(user_id)
        return {"posts": [p.to_dict() for p in posts], "rows": rows}

    @app.get("/posts/{post_id}")
    async def get_post(post_id: int):
        post = await post_service.find_post_by_id(post_id)
        if post is None:
            raise HTTPException(status_code=404, detail="Post not found")
        return post.to_dict()

    @app.post("/posts")
    async def add_post(body: PostIn):
        post_id = await post_service.add_post(Post(user_id=body.user_id, title=body.title, content=body.content))
        return {"code": 0, "id": post_id}

    # --------------- Health ---------------
    @app.get("/actuator/database")
    async def check_database():
        try:
            await post_db.check_connection()
        except (aiosqlite.Error, OSError) as e:
            logger.error(f"Database connection failed: {e}")
            return {"code": 1, "msg": "Database connection failed"}
        return {"code": 0, "msg": "Database connection OK"}

    @app.get("/actuator/redis")
    async def check_redis():
        try:
            await ping(r)
        except StoreUnavailable as e:
            logger.error(f"Redis connection failed: {e}")
            return {"code": 1, "msg": "Redis connection failed"}
        return {"code": 0, "msg": "Redis connection OK"}

    return app


def build_app() -> FastAPI:
    """Wire the services from config; used by uvicorn."""
    logging.basicConfig(level=config.LOG_LEVEL, format='%(asctime)s - %(levelname)s - %(message)s')

    r = create_redis(config.REDIS_URL)
    post_db = PostDB(config.POSTS_DB_PATH)
    post_service = PostService(
        post_db,
        max_size=config.CACHE_POSTS_MAX_SIZE,
        expire_seconds=config.CACHE_POSTS_EXPIRE_SECONDS,
        sensitive_filter=SensitiveFilter.from_file(config.SENSITIVE_WORDS_PATH),
    )
    data_service = DataService(r)
    return create_app(post_service, data_service, post_db, r)


if __name__ == "__main__":
    uvicorn.run(build_app(), host="0.0.0.0", port=8092)
