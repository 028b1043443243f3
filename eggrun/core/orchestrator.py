import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

# Import centralized components first
from eggrun.infra import log_utils

# Import core modules and the DAL contract
from eggrun.core import catalog as catalog_mod
from eggrun.core.coordinator import RewardCoordinator
from eggrun.core.models import (
    CollectionEntry,
    Inventory,
    OwnedCreature,
    Species,
    UserSettings,
    WorkoutRecord,
)
from eggrun.core.workout import WorkoutSession, build_manual_workout
from eggrun.data_access.dal import DataAccessLayer
from eggrun.errors import RewardResult, WorkoutStateError


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Orchestrator:
    """
    Entry point for the presentation layer.

    Holds the single workout session and delegates every currency movement
    to the RewardCoordinator. The DAL is injected, so the orchestrator does
    not know or care which storage backend it runs on.
    """

    def __init__(
        self,
        dal: DataAccessLayer,
        coordinator: Optional[RewardCoordinator] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.dal = dal
        self.coordinator = coordinator or RewardCoordinator(dal, clock=clock)
        self._clock = clock
        self._session: Optional[WorkoutSession] = None
        self._session_lock = threading.Lock()

    # --- Setup ---
    def seed(self, records: Optional[List[Dict[str, Any]]] = None, path: Optional[Path] = None) -> bool:
        """First-run import of the creature catalog. Never touches existing progress."""
        if records is None:
            records = catalog_mod.load_catalog_records(path)
        species = catalog_mod.build_species(records)
        seeded = self.dal.seed_catalog(species)
        log_utils.log_message(
            f"[seed] {'Seeded' if seeded else 'Skipped seeding of'} {len(species)} species"
        )
        return seeded

    # --- Workout ---
    @property
    def session(self) -> Optional[WorkoutSession]:
        return self._session

    def start_workout(self) -> None:
        with self._session_lock:
            if self._session is None or not self._session.is_running:
                self._session = WorkoutSession(clock=self._clock)
            # A running session applies WORKOUT_RESTART_POLICY itself.
            self._session.start()

    def record_step_delta(self, total_steps_since_boot: int) -> bool:
        with self._session_lock:
            if self._session is None:
                return False
            return self._session.record_step_delta(total_steps_since_boot)

    def pause_workout(self) -> None:
        with self._session_lock:
            if self._session is None:
                raise WorkoutStateError("No workout has been started")
            self._session.pause()

    def finish_workout(self, manual_distance_km: Optional[float] = None) -> WorkoutRecord:
        """Close the running session, save it, and credit its rewards."""
        with self._session_lock:
            if self._session is None:
                raise WorkoutStateError("No workout has been started")
            record = self._session.finish(manual_distance_km)
        return self.coordinator.credit_workout(record)

    def log_manual_workout(self, distance_km: float, start_time: Optional[datetime] = None) -> WorkoutRecord:
        """Record a workout typed in by the user, bypassing the step sensor."""
        now = self._clock()
        record = build_manual_workout(distance_km, start_time or now, now)
        return self.coordinator.credit_workout(record)

    # --- Rewards ---
    def acquire_from_egg(self) -> RewardResult:
        return self.coordinator.acquire()

    def evolve(self, instance_id: int) -> RewardResult:
        return self.coordinator.evolve(instance_id)

    def evolution_preview(self, instance_id: int) -> Optional[Species]:
        return self.coordinator.evolution_preview(instance_id)

    def reconcile(self) -> List[int]:
        return self.coordinator.reconcile_collection()

    # --- Queries ---
    def get_inventory(self) -> Inventory:
        return self.dal.get_inventory()

    def get_owned_creatures(self) -> List[OwnedCreature]:
        return self.dal.list_owned_creatures()

    def get_obtained_count(self) -> int:
        return len(self.dal.list_owned_creatures())

    def get_collection_entries(self) -> List[CollectionEntry]:
        return self.dal.list_collection_entries()

    def get_unlocked_entries(self) -> List[CollectionEntry]:
        return [e for e in self.dal.list_collection_entries() if e.unlocked]

    def get_workouts(self) -> List[WorkoutRecord]:
        return self.dal.list_workouts()

    def get_total_distance_km(self) -> float:
        return self.dal.total_distance_km()

    # --- Settings ---
    def get_user_settings(self) -> UserSettings:
        return self.dal.get_user_settings()

    def update_language(self, language: str) -> UserSettings:
        updated = UserSettings(language=language, distance_unit=self.dal.get_user_settings().distance_unit)
        self.dal.save_user_settings(updated)
        return updated

    def update_distance_unit(self, unit: str) -> UserSettings:
        updated = UserSettings(language=self.dal.get_user_settings().language, distance_unit=unit)
        self.dal.save_user_settings(updated)
        return updated
