"""
Centralized configuration: env vars and scoring constants.
"""
import os


# ── Logging ──────────────────────────────────────────────────────────────────
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
LOG_FORMAT = os.getenv('LOG_FORMAT', 'text')

# ── Environment ──────────────────────────────────────────────────────────────
APP_ENV = os.getenv('APP_ENV', 'development')

# ── Redis ─────────────────────────────────────────────────────────────────────
REDIS_URL = os.getenv('REDIS_URL', 'redis://localhost:6379/0')

# ── PostgreSQL ────────────────────────────────────────────────────────────────
DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///local.db')
# Pool sized to one request's collector fan-out (SW_COLLECTOR_WORKERS)
DB_POOL_SIZE = int(os.getenv('DB_POOL_SIZE', '10'))
DB_MAX_OVERFLOW = int(os.getenv('DB_MAX_OVERFLOW', '10'))
DB_STATEMENT_TIMEOUT_MS = int(os.getenv('DB_STATEMENT_TIMEOUT_MS', '5000'))

# ── Auth ─────────────────────────────────────────────────────────────────────
SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-change-me')
JWT_ALGORITHM = os.getenv('JWT_ALGORITHM', 'HS256')
ADMIN_USER_IDS = {
    uid.strip() for uid in os.getenv('ADMIN_USER_IDS', '').split(',') if uid.strip()
}

# ── Scoring engine ───────────────────────────────────────────────────────────
SW_COLLECTOR_TIMEOUT = float(os.getenv('SW_COLLECTOR_TIMEOUT', '5'))
SW_COLLECTOR_WORKERS = int(os.getenv('SW_COLLECTOR_WORKERS', '10'))
SW_CONTENT_SCAN_LIMIT = int(os.getenv('SW_CONTENT_SCAN_LIMIT', '1000'))
SW_USER_COUNT_TTL = int(os.getenv('SW_USER_COUNT_TTL', '3600'))
SW_DEFAULT_CACHE_TTL_MINUTES = int(os.getenv('SW_DEFAULT_CACHE_TTL_MINUTES', '15'))
SW_REDIS_SCORE_TTL = int(os.getenv('SW_REDIS_SCORE_TTL', '86400'))

# Columns that may hold the owning user on content tables, primary first
AUTHOR_COLUMNS = ['author_id', 'user_id']

# Columns that may hold a post's text, primary first
POST_BODY_COLUMNS = ['body', 'text']

# ── Breakdown categories (response order) ────────────────────────────────────
SW_CATEGORIES = [
    'registration',
    'profileComplete',
    'growth',
    'followers',
    'connections',
    'posts',
    'comments',
    'reactions',
    'invites',
    'growthBonus',
    'adminAdjustments',
]
