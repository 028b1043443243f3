from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional, Sequence

from eggrun.core.models import (
    CollectionEntry,
    Inventory,
    OwnedCreature,
    Species,
    UserSettings,
    WorkoutRecord,
)


class DataAccessLayer(ABC):
    """
    Abstract Base Class for a Data Access Layer.
    Defines the contract for the five logical tables (species, inventory,
    owned creatures, collection entries, workouts) plus user settings, so the
    reward logic can run against any storage backend (JSON, DB, etc.).

    Every method is atomic for the single row it touches and raises
    `StoreUnavailableError` when the backend fails.
    """

    # --- Catalog -------------------------------------------------------------
    @abstractmethod
    def seed_catalog(self, species: Sequence[Species]) -> bool:
        """
        First-run seeding of species, collection entries, the inventory row
        and default user settings.

        Returns:
            False (and writes nothing) when owned creatures or collection
            entries already exist, True otherwise.
        """
        pass

    @abstractmethod
    def list_species(self) -> List[Species]:
        """Returns all species ordered by id."""
        pass

    @abstractmethod
    def get_species(self, species_id: int) -> Optional[Species]:
        pass

    # --- Inventory -----------------------------------------------------------
    @abstractmethod
    def get_inventory(self) -> Inventory:
        pass

    @abstractmethod
    def add_currency(self, eggs: int, candies: int) -> Inventory:
        """Unconditionally credits both balances. Returns the new balance."""
        pass

    @abstractmethod
    def try_consume(self, eggs: int, candies: int) -> bool:
        """
        Atomically checks both balances and decrements both, or neither.

        This is the only way a balance ever goes down. It must be serialized
        against `add_currency` and against itself.
        """
        pass

    # --- Ownership -----------------------------------------------------------
    @abstractmethod
    def add_owned_creature(self, species_id: int, acquired_at: datetime) -> OwnedCreature:
        """Creates a creature with a fresh, never reused instance id."""
        pass

    @abstractmethod
    def get_owned_creature(self, instance_id: int) -> Optional[OwnedCreature]:
        pass

    @abstractmethod
    def list_owned_creatures(self) -> List[OwnedCreature]:
        pass

    @abstractmethod
    def update_creature_species(self, instance_id: int, species_id: int) -> OwnedCreature:
        """Moves a creature to a new species. Raises KeyError if it does not exist."""
        pass

    # --- Collection ----------------------------------------------------------
    @abstractmethod
    def list_collection_entries(self) -> List[CollectionEntry]:
        pass

    @abstractmethod
    def unlock_collection_entry(self, species_id: int) -> bool:
        """
        Marks a species as unlocked. Idempotent.

        Returns:
            True if the entry was locked before this call.
        """
        pass

    # --- Workouts ------------------------------------------------------------
    @abstractmethod
    def append_workout(self, record: WorkoutRecord) -> WorkoutRecord:
        """Appends to the workout log and returns the record with its id."""
        pass

    @abstractmethod
    def list_workouts(self) -> List[WorkoutRecord]:
        """Returns the workout log, newest first."""
        pass

    @abstractmethod
    def total_distance_km(self) -> float:
        pass

    # --- User settings -------------------------------------------------------
    @abstractmethod
    def get_user_settings(self) -> UserSettings:
        pass

    @abstractmethod
    def save_user_settings(self, user_settings: UserSettings) -> None:
        pass


def check_amounts(eggs: int, candies: int) -> None:
    """Shared argument guard for the inventory operations."""
    if eggs < 0 or candies < 0:
        raise ValueError(f"Currency amounts must be non-negative (eggs={eggs}, candies={candies})")
