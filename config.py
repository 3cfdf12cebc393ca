# config.py
import os

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name, default=False):
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


# --- Database ---
DATABASE_URL = os.getenv('DATABASE_URL', 'postgresql://localhost:5432/ehdb')
DB_POOL_MIN_CONN = int(os.getenv('DB_POOL_MIN_CONN', 1))
DB_POOL_MAX_CONN = int(os.getenv('DB_POOL_MAX_CONN', 5))

# --- Upstream ---
EH_HOST = os.getenv('EH_HOST', 'e-hentai.org')
EH_API_URL = os.getenv('EH_API_URL', 'https://api.e-hentai.org/api.php')
EH_COOKIES = os.getenv('EH_COOKIES', '')
# http(s) proxy URL; passed to aiohttp per request
EH_PROXY = os.getenv('EH_PROXY', '')

# --- Crawler ---
CRAWLER_HEADERS = {
    'User-Agent': 'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36',
    'Accept-Language': 'en-US;q=0.9,en;q=0.8',
    'DNT': '1',
}

# --- HTTP Client Defaults ---
CRAWLER_HTTP_TOTAL_TIMEOUT_SECONDS = int(os.getenv('CRAWLER_HTTP_TOTAL_TIMEOUT_SECONDS', 30))
CRAWLER_HTTP_CONNECT_TIMEOUT_SECONDS = int(os.getenv('CRAWLER_HTTP_CONNECT_TIMEOUT_SECONDS', 15))
CRAWLER_HTTP_SOCK_READ_TIMEOUT_SECONDS = int(os.getenv('CRAWLER_HTTP_SOCK_READ_TIMEOUT_SECONDS', 25))
CRAWLER_HTTP_CONCURRENCY_LIMIT = int(os.getenv('CRAWLER_HTTP_CONCURRENCY_LIMIT', 10))

# --- Retry / Rate limiting ---
CRAWLER_RETRY_TIMES = int(os.getenv('CRAWLER_RETRY_TIMES', 3))
CRAWLER_WAIT_FOR_IP_UNBAN = _env_bool('CRAWLER_WAIT_FOR_IP_UNBAN', False)
CRAWLER_PAGE_DELAY_SECONDS = float(os.getenv('CRAWLER_PAGE_DELAY_SECONDS', 1))
CRAWLER_API_DELAY_SECONDS = float(os.getenv('CRAWLER_API_DELAY_SECONDS', 1))
TORRENT_ITEM_DELAY_SECONDS = float(os.getenv('TORRENT_ITEM_DELAY_SECONDS', 1))
TORRENT_BACKFILL_DELAY_SECONDS = float(os.getenv('TORRENT_BACKFILL_DELAY_SECONDS', 2))

# --- Workflow defaults ---
GALLERY_SYNC_OFFSET_HOURS = int(os.getenv('GALLERY_SYNC_OFFSET_HOURS', 0))
RESYNC_HOURS = int(os.getenv('RESYNC_HOURS', 24))
PENDING_GALLERY_GRACE_DAYS = int(os.getenv('PENDING_GALLERY_GRACE_DAYS', 7))

# Advisory lock key shared by every sync process against the same database
RUN_LOCK_KEY = int(os.getenv('RUN_LOCK_KEY', 734001))

LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
