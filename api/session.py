"""Profile persistence with Redis backend and in-memory fallback, plus player tokens."""

import json
import logging
from typing import Any

import redis.asyncio as redis
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from config import config
from core.profiles import InMemoryProfileStore, Profile, ProfileStore

logger = logging.getLogger(__name__)


class PlayerTokenSigner:
    """Sign and verify seat tokens using itsdangerous."""

    def __init__(self, secret_key: str | None = None) -> None:
        """Initialize the signer with a secret key."""
        self._secret_key = secret_key or config.security.secret_key
        self._serializer = URLSafeTimedSerializer(self._secret_key, salt="player-seat")

    def sign(self, table_id: str, player_id: str) -> str:
        """Create a signed token binding a player to a table."""
        return self._serializer.dumps({"table_id": table_id, "player_id": player_id})

    def unsign(self, token: str, max_age: int | None = None) -> dict[str, str] | None:
        """
        Verify and extract the seat from a signed token.

        Args:
            token: The signed token to verify
            max_age: Maximum age in seconds (defaults to player_token_ttl)

        Returns:
            ``{"table_id", "player_id"}`` if valid, None otherwise
        """
        max_age = max_age or config.security.player_token_ttl
        try:
            data = self._serializer.loads(token, max_age=max_age)
        except (BadSignature, SignatureExpired):
            return None
        if not isinstance(data, dict) or "table_id" not in data or "player_id" not in data:
            return None
        return data


# Global signer instance
_player_signer: PlayerTokenSigner | None = None


def get_player_signer() -> PlayerTokenSigner:
    """Get or create the player token signer."""
    global _player_signer
    if _player_signer is None:
        _player_signer = PlayerTokenSigner()
    return _player_signer


class RedisProfileStore(ProfileStore):
    """Redis-backed profile store."""

    def __init__(self, redis_client: redis.Redis) -> None:
        self._redis = redis_client
        self._prefix = "blackjack:profile:"

    def _key(self, profile_id: str) -> str:
        """Get Redis key for a profile."""
        return f"{self._prefix}{profile_id}"

    async def get(self, profile_id: str) -> Profile | None:
        """Load a profile."""
        data = await self._redis.get(self._key(profile_id))
        if data is None:
            return None
        return Profile.from_dict(json.loads(data))

    async def save(self, profile: Profile) -> None:
        """Persist a profile snapshot."""
        await self._redis.set(self._key(profile.id), json.dumps(profile.to_dict()))

    async def delete(self, profile_id: str) -> None:
        """Delete a profile."""
        await self._redis.delete(self._key(profile_id))


# Global profile store instance
_profile_store: ProfileStore | None = None


async def get_profile_store() -> ProfileStore:
    """Get or create the profile store, falling back to memory if Redis is unreachable."""
    global _profile_store

    if _profile_store is not None:
        return _profile_store

    try:
        redis_client = redis.from_url(config.redis.url)
        await redis_client.ping()
        _profile_store = RedisProfileStore(redis_client)
        logger.info("Using Redis profile store at %s:%s", config.redis.host, config.redis.port)
        return _profile_store
    except Exception:
        logger.warning("Redis unavailable, using in-memory profile store")

    _profile_store = InMemoryProfileStore()
    return _profile_store


def set_profile_store(store: ProfileStore | None) -> None:
    """Replace the global profile store (``None`` forces a new lookup)."""
    global _profile_store
    _profile_store = store


def extract_seat(token: str) -> dict[str, Any] | None:
    """
    Extract the seat from a signed player token.

    Args:
        token: The signed player token

    Returns:
        The seat if valid, None otherwise
    """
    return get_player_signer().unsign(token)
