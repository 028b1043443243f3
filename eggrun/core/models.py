"""Domain records shared by the stores, the workout engine and the coordinator."""

from datetime import datetime
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class Species(BaseModel):
    """A catalog entry. Read-only once the catalog is built."""

    model_config = ConfigDict(frozen=True)

    species_id: int = Field(ge=1)
    name: str
    name_alt: str = ""
    type1: str
    type2: Optional[str] = None
    description: str = ""
    description_alt: str = ""
    evolves_from: int = Field(default=0, ge=0)
    evolves_to: int = Field(default=0, ge=0)

    @property
    def is_base(self) -> bool:
        return self.evolves_from == 0

    @property
    def can_evolve(self) -> bool:
        return self.evolves_to != 0


class OwnedCreature(BaseModel):
    """
    A creature instance in the user's party.

    `instance_id` never changes; evolution only moves `current_species_id`.
    `origin_species_id` remembers what hatched, which is what keeps a base
    species out of the egg pool after its owner has evolved.
    """

    instance_id: int
    origin_species_id: int
    current_species_id: int
    acquired_at: datetime


class CollectionEntry(BaseModel):
    species_id: int
    unlocked: bool = False


class Inventory(BaseModel):
    eggs: int = Field(default=0, ge=0)
    rare_candies: int = Field(default=0, ge=0)


class WorkoutSource(str, Enum):
    SENSOR = "sensor"
    MANUAL = "manual"


class WorkoutRecord(BaseModel):
    """A finished workout. Immutable; the workout log is append-only."""

    model_config = ConfigDict(frozen=True)

    workout_id: Optional[int] = None
    start_time: datetime
    end_time: datetime
    distance_km: float = Field(ge=0)
    steps: int = Field(default=0, ge=0)
    source: WorkoutSource
    eggs_earned: int = Field(default=0, ge=0)
    candies_earned: int = Field(default=0, ge=0)


class UserSettings(BaseModel):
    """Presentation preferences. Nothing in the reward logic reads these."""

    language: Literal["es", "en"] = "es"
    distance_unit: Literal["km", "mi"] = "km"


class EvolutionOutcome(BaseModel):
    instance_id: int
    from_species_id: int
    to_species_id: int
