"""Domain models for candidate visit locations."""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True, slots=True)
class Coordinates:
    latitude: float
    longitude: float

    def as_param(self) -> str:
        """Render as the ``lat,lng`` form the mapping provider expects."""
        return f"{self.latitude},{self.longitude}"


@dataclass(frozen=True, slots=True)
class Stop:
    """A visitable permit or lead location pulled into a planning run."""

    id: str
    latitude: float
    longitude: float
    address: str
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    priority_score: float = 50.0

    @property
    def coordinates(self) -> Coordinates:
        return Coordinates(self.latitude, self.longitude)

    def dedup_key(self) -> tuple[str, str]:
        return (self.address.strip().lower(), (self.city or "").strip().lower())
