"""
Redis markers for messages that were already triaged.

A message is claimed (SET NX) before triage starts, so a batch re-run, a repeated id
or two overlapping runs never reply to the same applicant twice. When Redis is
unavailable every claim succeeds and the pipeline runs without dedup.
"""
import logging
from typing import Optional

from ..config import settings

logger = logging.getLogger(__name__)

KEY_PREFIX = "triage:processed"

_redis_client = None
_redis_unavailable = False  # Track if Redis connection failed


def get_redis_client():
    """
    Get or create Redis client.
    Returns None if Redis unavailable (connection failed).
    """
    global _redis_client, _redis_unavailable

    # If we already know Redis is unavailable, skip connection attempts
    if _redis_unavailable:
        return None

    if _redis_client is not None:
        return _redis_client

    try:
        import redis
        client = redis.from_url(
            settings.redis_url,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        client.ping()
        logger.debug("Redis dedup cache connected")
        _redis_client = client
        return _redis_client
    except Exception as e:
        logger.warning(f"Redis unavailable: {e}. Triage runs without dedup.")
        _redis_unavailable = True
        return None


def reset_redis_client(client=None):
    """Swap the cached client (tests) or clear it so the next call reconnects."""
    global _redis_client, _redis_unavailable
    _redis_client = client
    _redis_unavailable = False


def _key(message_id: str) -> str:
    return f"{KEY_PREFIX}:{message_id}"


def is_message_processed(message_id: str) -> bool:
    client = get_redis_client()
    if not client or not message_id:
        return False
    try:
        return bool(client.exists(_key(message_id)))
    except Exception as e:
        logger.debug(f"Redis exists error: {e}")
        return False


def claim_message(message_id: str, ttl_s: Optional[int] = None) -> bool:
    """
    Atomically claim a message for triage (SET NX EX) before any work starts.

    Returns:
        False only when another run already holds the marker. Without Redis (or
        without an id) every claim succeeds and triage runs without dedup.
    """
    client = get_redis_client()
    if not client or not message_id:
        return True
    try:
        return bool(client.set(_key(message_id), "1", nx=True, ex=ttl_s or settings.dedup_ttl_s))
    except Exception as e:
        logger.debug(f"Redis claim error: {e}")
        return True


def release_message(message_id: str) -> None:
    """Drop a claim after a failed triage so the next run retries the message."""
    client = get_redis_client()
    if not client or not message_id:
        return
    try:
        client.delete(_key(message_id))
    except Exception as e:
        logger.debug(f"Redis delete error: {e}")
