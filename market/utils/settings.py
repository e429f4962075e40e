# market/utils/settings.py
import os
from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./market.db")
DB_POOL_SIZE = int(os.getenv("DB_POOL_SIZE", 10))
DB_CONNECT_RETRIES = int(os.getenv("DB_CONNECT_RETRIES", 5))

# lock_timeout for a single checkout transaction (PostgreSQL only), 0 = wait forever
ORDER_LOCK_TIMEOUT_MS = int(os.getenv("ORDER_LOCK_TIMEOUT_MS", 5000))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FORMAT = os.getenv("LOG_FORMAT", "text").lower()

DEFAULT_PAGE_SIZE = int(os.getenv("DEFAULT_PAGE_SIZE", 20))
MAX_PAGE_SIZE = int(os.getenv("MAX_PAGE_SIZE", 100))

APP_VERSION = os.getenv("APP_VERSION", "1.0.0")
