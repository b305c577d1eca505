from datetime import datetime, timedelta
from typing import Optional

import redis

from .config import settings
from .models import ChatState

redis_client = redis.from_url(settings.REDIS_URL, decode_responses=True)

CHAT_KEY_PREFIX = "chat:"


def get_redis():
    return redis_client


def load_chat_state(client: redis.Redis, session_id: Optional[str]) -> Optional[ChatState]:
    """Returns the live chat for a cookie id, dropping it once it has timed out."""
    if not session_id:
        return None

    raw = client.get(CHAT_KEY_PREFIX + session_id)
    if not raw:
        return None

    state = ChatState.model_validate_json(raw)
    if datetime.now() - state.created_at > timedelta(
        minutes=settings.SESSION_TIMEOUT_MINUTES
    ):
        client.delete(CHAT_KEY_PREFIX + session_id)
        return None
    return state


def save_chat_state(client: redis.Redis, session_id: str, state: ChatState):
    client.set(
        CHAT_KEY_PREFIX + session_id,
        state.model_dump_json(),
        ex=timedelta(minutes=settings.SESSION_TIMEOUT_MINUTES),
    )


def delete_chat_state(client: redis.Redis, session_id: str):
    client.delete(CHAT_KEY_PREFIX + session_id)
