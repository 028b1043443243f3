"""JSON file-based implementation of the Data Access Layer."""

from __future__ import annotations

import json
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, List, Optional, Sequence

from eggrun.config import settings
from eggrun.core.models import (
    CollectionEntry,
    Inventory,
    OwnedCreature,
    Species,
    UserSettings,
    WorkoutRecord,
)
from eggrun.errors import StoreUnavailableError
from eggrun.infra import log_utils
from .dal import DataAccessLayer, check_amounts

# One lock for every read-modify-write on the state files. Several JsonDal
# instances in one process share the same files, so the lock is module level.
_lock = threading.RLock()


class JsonDal(DataAccessLayer):
    """Data Access Layer that persists each table to a JSON file on disk."""

    def _read_json(self, path: Path, default: Any) -> Any:
        if not path.exists():
            return default
        try:
            with path.open("r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StoreUnavailableError(f"Could not read {path.name}: {e}") from e

    def _write_json(self, path: Path, data: Any) -> None:
        # Write-then-rename so a crash never leaves a half written table.
        tmp = path.with_suffix(".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with tmp.open("w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, sort_keys=True)
            tmp.replace(path)
        except OSError as e:
            raise StoreUnavailableError(f"Could not write {path.name}: {e}") from e

    # --- Catalog -------------------------------------------------------------
    def seed_catalog(self, species: Sequence[Species]) -> bool:
        with _lock:
            owned = self._read_json(settings.owned_creatures_path, {})
            entries = self._read_json(settings.collection_path, {})
            if owned.get("creatures") or entries:
                log_utils.log_message("[JsonDal] Catalog already seeded, keeping user progress")
                return False

            ordered = sorted(species, key=lambda s: s.species_id)
            self._write_json(settings.species_path, [s.model_dump(mode="json") for s in ordered])
            self._write_json(settings.collection_path, {str(s.species_id): False for s in ordered})
            if not settings.inventory_path.exists():
                self._write_json(settings.inventory_path, Inventory().model_dump())
            if not settings.user_settings_path.exists():
                defaults = UserSettings(
                    language=settings.DEFAULT_LANGUAGE,
                    distance_unit=settings.DEFAULT_DISTANCE_UNIT,
                )
                self._write_json(settings.user_settings_path, defaults.model_dump())
            log_utils.log_message(f"[JsonDal] Seeded {len(ordered)} species")
            return True

    def list_species(self) -> List[Species]:
        with _lock:
            rows = self._read_json(settings.species_path, [])
        return [Species.model_validate(r) for r in rows]

    def get_species(self, species_id: int) -> Optional[Species]:
        return next((s for s in self.list_species() if s.species_id == species_id), None)

    # --- Inventory -----------------------------------------------------------
    def _load_inventory(self) -> Inventory:
        return Inventory.model_validate(self._read_json(settings.inventory_path, {}))

    def get_inventory(self) -> Inventory:
        with _lock:
            return self._load_inventory()

    def add_currency(self, eggs: int, candies: int) -> Inventory:
        check_amounts(eggs, candies)
        with _lock:
            bag = self._load_inventory()
            bag = Inventory(eggs=bag.eggs + eggs, rare_candies=bag.rare_candies + candies)
            self._write_json(settings.inventory_path, bag.model_dump())
        log_utils.log_message(
            f"[bag] +{eggs} eggs, +{candies} candies. Now: eggs={bag.eggs}, candies={bag.rare_candies}"
        )
        return bag

    def try_consume(self, eggs: int, candies: int) -> bool:
        check_amounts(eggs, candies)
        with _lock:
            bag = self._load_inventory()
            if bag.eggs < eggs or bag.rare_candies < candies:
                log_utils.log_message(
                    f"[bag] Declined -{eggs} eggs, -{candies} candies "
                    f"(have eggs={bag.eggs}, candies={bag.rare_candies})"
                )
                return False
            bag = Inventory(eggs=bag.eggs - eggs, rare_candies=bag.rare_candies - candies)
            self._write_json(settings.inventory_path, bag.model_dump())
        log_utils.log_message(
            f"[bag] -{eggs} eggs, -{candies} candies. Now: eggs={bag.eggs}, candies={bag.rare_candies}"
        )
        return True

    # --- Ownership -----------------------------------------------------------
    def _load_owned(self) -> dict:
        data = self._read_json(settings.owned_creatures_path, {})
        data.setdefault("next_instance_id", 1)
        data.setdefault("creatures", [])
        return data

    def add_owned_creature(self, species_id: int, acquired_at: datetime) -> OwnedCreature:
        with _lock:
            data = self._load_owned()
            creature = OwnedCreature(
                instance_id=data["next_instance_id"],
                origin_species_id=species_id,
                current_species_id=species_id,
                acquired_at=acquired_at,
            )
            data["next_instance_id"] += 1
            data["creatures"].append(creature.model_dump(mode="json"))
            self._write_json(settings.owned_creatures_path, data)
        log_utils.log_message(f"[JsonDal] Creature #{creature.instance_id} added as species {species_id}")
        return creature

    def get_owned_creature(self, instance_id: int) -> Optional[OwnedCreature]:
        return next((c for c in self.list_owned_creatures() if c.instance_id == instance_id), None)

    def list_owned_creatures(self) -> List[OwnedCreature]:
        with _lock:
            data = self._load_owned()
        return [OwnedCreature.model_validate(c) for c in data["creatures"]]

    def update_creature_species(self, instance_id: int, species_id: int) -> OwnedCreature:
        with _lock:
            data = self._load_owned()
            for row in data["creatures"]:
                if row["instance_id"] == instance_id:
                    row["current_species_id"] = species_id
                    self._write_json(settings.owned_creatures_path, data)
                    return OwnedCreature.model_validate(row)
        raise KeyError(instance_id)

    # --- Collection ----------------------------------------------------------
    def list_collection_entries(self) -> List[CollectionEntry]:
        with _lock:
            entries = self._read_json(settings.collection_path, {})
        return [
            CollectionEntry(species_id=int(k), unlocked=v)
            for k, v in sorted(entries.items(), key=lambda kv: int(kv[0]))
        ]

    def unlock_collection_entry(self, species_id: int) -> bool:
        with _lock:
            entries = self._read_json(settings.collection_path, {})
            key = str(species_id)
            if entries.get(key):
                return False
            entries[key] = True
            self._write_json(settings.collection_path, entries)
        log_utils.log_message(f"[JsonDal] Collection entry {species_id} unlocked")
        return True

    # --- Workouts ------------------------------------------------------------
    def append_workout(self, record: WorkoutRecord) -> WorkoutRecord:
        with _lock:
            data = self._read_json(settings.workouts_path, {})
            data.setdefault("next_workout_id", 1)
            data.setdefault("workouts", [])
            saved = record.model_copy(update={"workout_id": data["next_workout_id"]})
            data["next_workout_id"] += 1
            data["workouts"].append(saved.model_dump(mode="json"))
            self._write_json(settings.workouts_path, data)
        log_utils.log_message(
            f"[JsonDal] Workout #{saved.workout_id} saved ({saved.distance_km:.2f} km, {saved.source.value})"
        )
        return saved

    def list_workouts(self) -> List[WorkoutRecord]:
        with _lock:
            data = self._read_json(settings.workouts_path, {})
        records = [WorkoutRecord.model_validate(w) for w in data.get("workouts", [])]
        return sorted(records, key=lambda r: r.start_time, reverse=True)

    def total_distance_km(self) -> float:
        return sum(w.distance_km for w in self.list_workouts())

    # --- User settings -------------------------------------------------------
    def get_user_settings(self) -> UserSettings:
        with _lock:
            data = self._read_json(settings.user_settings_path, None)
        if data is None:
            return UserSettings(
                language=settings.DEFAULT_LANGUAGE,
                distance_unit=settings.DEFAULT_DISTANCE_UNIT,
            )
        return UserSettings.model_validate(data)

    def save_user_settings(self, user_settings: UserSettings) -> None:
        with _lock:
            self._write_json(settings.user_settings_path, user_settings.model_dump())
        log_utils.log_message(f"[JsonDal] User settings saved: {user_settings.model_dump()}")
