"""Player profiles and the persistence interface the table writes through."""

from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from typing import Any


@dataclass
class Profile:
    """Persisted player record. ``bankroll`` is the balance outside any table."""

    id: str
    name: str = ""
    bankroll: int = 0
    hands_played: int = 0
    hands_won: int = 0
    biggest_won: int = 0
    experience: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Snapshot for persistence."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Profile":
        """Restore a profile from a snapshot."""
        return cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            bankroll=int(data.get("bankroll", 0)),
            hands_played=int(data.get("hands_played", 0)),
            hands_won=int(data.get("hands_won", 0)),
            biggest_won=int(data.get("biggest_won", 0)),
            experience=int(data.get("experience", 0)),
        )


class ProfileStore(ABC):
    """Abstract profile store."""

    @abstractmethod
    async def get(self, profile_id: str) -> Profile | None:
        """Load a profile."""
        ...

    @abstractmethod
    async def save(self, profile: Profile) -> None:
        """Persist a profile snapshot. Raises on failure."""
        ...

    async def load_or_create(
        self,
        profile_id: str,
        name: str = "",
        starting_bankroll: int = 0,
    ) -> Profile:
        """Load a profile, creating it with a starting bankroll if missing."""
        profile = await self.get(profile_id)
        if profile is None:
            profile = Profile(id=profile_id, name=name, bankroll=starting_bankroll)
            await self.save(profile)
        return profile


class InMemoryProfileStore(ProfileStore):
    """
    In-memory profile store for local development and tests.

    Profiles are handed out by reference so the table and the store always
    agree on the live bankroll; ``snapshots`` records what was persisted.
    """

    def __init__(self) -> None:
        self._profiles: dict[str, Profile] = {}
        self.snapshots: dict[str, dict[str, Any]] = {}

    async def get(self, profile_id: str) -> Profile | None:
        """Load a profile."""
        return self._profiles.get(profile_id)

    async def save(self, profile: Profile) -> None:
        """Persist a profile snapshot."""
        self._profiles[profile.id] = profile
        self.snapshots[profile.id] = profile.to_dict()

    def add(self, profile: Profile) -> Profile:
        """Register a profile without going through ``save``."""
        self._profiles[profile.id] = profile
        self.snapshots[profile.id] = profile.to_dict()
        return profile
