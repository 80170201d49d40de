import logging
import os
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import List, Optional

import aiosqlite

logger = logging.getLogger("post_db")

# Post status: 0 = normal, 1 = featured, 2 = blocked
STATUS_BLOCKED = 2
ORDER_NEWEST = 0
ORDER_HOT = 1


@dataclass
class Post:
    user_id: int
    title: str
    content: str
    id: Optional[int] = None
    type: int = 0  # 0 = normal, 1 = pinned
    status: int = 0
    create_time: str = field(default_factory=lambda: datetime.now().isoformat(timespec="seconds"))
    comment_count: int = 0
    score: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)


def _row_to_post(row: aiosqlite.Row) -> Post:
    return Post(
        id=row["id"],
        user_id=row["user_id"],
        title=row["title"],
        content=row["content"],
        type=row["type"],
        status=row["status"],
        create_time=row["create_time"],
        comment_count=row["comment_count"],
        score=row["score"],
    )


class PostDB:
    """SQLite storage for discussion posts. Every call opens and closes its own connection."""

    def __init__(self, db_path: str):
        self.db_path = db_path

    async def init(self):
        db_dir = os.path.dirname(self.db_path)
        if db_dir and not os.path.exists(db_dir):
            os.makedirs(db_dir)

        async with aiosqlite.connect(self.db_path) as db:
            await db.execute("""
            CREATE TABLE IF NOT EXISTS discuss_post (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id INTEGER NOT NULL,
                title TEXT,
                content TEXT,
                type INTEGER DEFAULT 0,
                status INTEGER DEFAULT 0,
                create_time TEXT,
                comment_count INTEGER DEFAULT 0,
                score REAL DEFAULT 0
            )""")
            await db.execute("CREATE INDEX IF NOT EXISTS idx_discuss_post_user ON discuss_post (user_id)")
            await db.commit()

    @staticmethod
    def _where(user_id: int):
        # user_id 0 = all users
        if user_id != 0:
            return "WHERE status != ? AND user_id = ?", (STATUS_BLOCKED, user_id)
        return "WHERE status != ?", (STATUS_BLOCKED,)

    async def select_posts(self, user_id: int, offset: int, limit: int, order_mode: int) -> List[Post]:
        where, params = self._where(user_id)
        if order_mode == ORDER_HOT:
            order = "ORDER BY type DESC, score DESC, create_time DESC"
        else:
            order = "ORDER BY type DESC, create_time DESC"
        sql = f"SELECT * FROM discuss_post {where} {order} LIMIT ? OFFSET ?"
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute(sql, params + (limit, offset)) as cursor:
                rows = await cursor.fetchall()
        return [_row_to_post(r) for r in rows]

    async def select_post_rows(self, user_id: int) -> int:
        where, params = self._where(user_id)
        async with aiosqlite.connect(self.db_path) as db:
            async with db.execute(f"SELECT COUNT(id) FROM discuss_post {where}", params) as cursor:
                row = await cursor.fetchone()
        return row[0] if row else 0

    async def insert_post(self, post: Post) -> int:
        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute("""
                INSERT INTO discuss_post (user_id, title, content, type, status, create_time, comment_count, score)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """, (post.user_id, post.title, post.content, post.type, post.status,
                  post.create_time, post.comment_count, post.score))
            await db.commit()
            post.id = cursor.lastrowid
        return post.id

    async def select_post_by_id(self, post_id: int) -> Optional[Post]:
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute("SELECT * FROM discuss_post WHERE id=?", (post_id,)) as cursor:
                row = await cursor.fetchone()
        return _row_to_post(row) if row else None

    async def _update(self, column: str, value, post_id: int) -> int:
        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute(f"UPDATE discuss_post SET {column}=? WHERE id=?", (value, post_id))
            await db.commit()
            return cursor.rowcount

    async def update_comment_count(self, post_id: int, comment_count: int) -> int:
        return await self._update("comment_count", comment_count, post_id)

    async def update_type(self, post_id: int, type_: int) -> int:
        return await self._update("type", type_, post_id)

    async def update_status(self, post_id: int, status: int) -> int:
        return await self._update("status", status, post_id)

    async def update_score(self, post_id: int, score: float) -> int:
        return await self._update("score", score, post_id)

    async def check_connection(self) -> None:
        """Open and close one connection; raises if the database cannot be reached."""
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute("SELECT 1")
