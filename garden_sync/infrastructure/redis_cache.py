# garden_sync/infrastructure/redis_cache.py
"""Redis connection plus the short-lived OAuth `state` entries used by the connect flows."""
import json
import os
import secrets
from typing import Optional

import redis.asyncio as aioredis

REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
OAUTH_STATE_TTL = int(os.getenv("OAUTH_STATE_TTL", "600"))
OAUTH_STATE_PREFIX = "oauth_state:"

redis_client = aioredis.from_url(REDIS_URL, decode_responses=True)


async def create_oauth_state(user_id: str, provider: str) -> str:
    state = secrets.token_urlsafe(32)
    payload = {"user_id": str(user_id), "provider": provider}
    await redis_client.set(OAUTH_STATE_PREFIX + state, json.dumps(payload), ex=OAUTH_STATE_TTL)
    return state


async def pop_oauth_state(state: str) -> Optional[dict]:
    """One-shot read: the entry is deleted in the same transaction it is read in."""
    key = OAUTH_STATE_PREFIX + state
    async with redis_client.pipeline(transaction=True) as pipe:
        raw, _ = await pipe.get(key).delete(key).execute()
    if not raw:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        return None
