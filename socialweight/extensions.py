"""
Shared Redis client for the score-record mirror.

redis.from_url() does not connect until the first command, so importing this
module is always safe (even when Redis is down during tests).
"""
import logging
import redis

from socialweight.config import REDIS_URL

logger = logging.getLogger('socialweight.extensions')

# ── Redis ─────────────────────────────────────────────────────────────────────
redis_client = redis.from_url(REDIS_URL, decode_responses=True)
