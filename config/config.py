# Settings for the community data tier
import os

# Redis Configuration (UV HyperLogLogs + DAU bitmaps)
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")

# Posts database (SQLite)
POSTS_DB_PATH = os.getenv("POSTS_DB_PATH", os.path.join("data", "community.db"))

# Hot post cache - shared by the post list and the post rows cache
CACHE_POSTS_MAX_SIZE = int(os.getenv("CACHE_POSTS_MAX_SIZE", "15"))
CACHE_POSTS_EXPIRE_SECONDS = int(os.getenv("CACHE_POSTS_EXPIRE_SECONDS", "180"))

# Sensitive word list, one word per line
SENSITIVE_WORDS_PATH = os.getenv("SENSITIVE_WORDS_PATH", os.path.join("data", "sensitive-words.txt"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
