from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, List, Optional, Sequence

import psycopg
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool

from eggrun.config import settings
from eggrun.core.models import (
    CollectionEntry,
    Inventory,
    OwnedCreature,
    Species,
    UserSettings,
    WorkoutRecord,
)
from eggrun.data_access.dal import DataAccessLayer, check_amounts
from eggrun.errors import StoreUnavailableError
from eggrun.infra import log_utils

_SPECIES_COLUMNS = (
    "species_id, name, name_alt, type1, type2, description, description_alt, evolves_from, evolves_to"
)
_CREATURE_COLUMNS = "instance_id, origin_species_id, current_species_id, acquired_at"
_WORKOUT_COLUMNS = (
    "workout_id, start_time, end_time, distance_km, steps, source, eggs_earned, candies_earned"
)


class PostgresDal(DataAccessLayer):
    """
    A Data Access Layer implementation that uses a PostgreSQL database as the backend.
    This class fulfills the contract defined by the DataAccessLayer ABC.

    Inventory changes are single conditional UPDATE statements, so the row
    lock Postgres takes for the update is the critical section; no
    application-side locking is needed even across processes.
    """

    def __init__(self, conninfo: Optional[str] = None):
        conninfo = conninfo or settings.DATABASE_URL
        if not conninfo:
            raise StoreUnavailableError("DATABASE_URL is not configured")
        # A connection pool is more efficient than opening and closing a new
        # connection for every store call. Rows come back as dicts, which map
        # straight onto the pydantic models.
        self.pool = ConnectionPool(
            conninfo=conninfo,
            min_size=settings.DB_POOL_MIN_SIZE,
            max_size=settings.DB_POOL_MAX_SIZE,
            kwargs={"row_factory": dict_row},
            open=True,
        )

    def close(self) -> None:
        self.pool.close()

    @contextmanager
    def _cursor(self) -> Iterator[psycopg.Cursor]:
        """One transaction per block; committed on exit, rolled back on error."""
        try:
            with self.pool.connection() as conn:
                with conn.cursor() as cur:
                    yield cur
        except psycopg.Error as e:
            log_utils.log_message(f"[PostgresDal] Database error: {e}", "ERROR")
            raise StoreUnavailableError(str(e)) from e

    # --- Catalog -------------------------------------------------------------
    def seed_catalog(self, species: Sequence[Species]) -> bool:
        with self._cursor() as cur:
            cur.execute("SELECT (SELECT COUNT(*) FROM owned_creatures) + (SELECT COUNT(*) FROM collection_entries) AS n;")
            if cur.fetchone()["n"]:
                log_utils.log_message("[PostgresDal] Catalog already seeded, keeping user progress")
                return False

            for s in species:
                cur.execute(
                    f"""
                    INSERT INTO species ({_SPECIES_COLUMNS})
                    VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
                    ON CONFLICT (species_id) DO UPDATE SET
                        name = EXCLUDED.name, name_alt = EXCLUDED.name_alt,
                        type1 = EXCLUDED.type1, type2 = EXCLUDED.type2,
                        description = EXCLUDED.description,
                        description_alt = EXCLUDED.description_alt,
                        evolves_from = EXCLUDED.evolves_from,
                        evolves_to = EXCLUDED.evolves_to;
                    """,
                    (
                        s.species_id, s.name, s.name_alt, s.type1, s.type2,
                        s.description, s.description_alt, s.evolves_from, s.evolves_to,
                    ),
                )
                cur.execute(
                    "INSERT INTO collection_entries (species_id, unlocked) VALUES (%s, FALSE);",
                    (s.species_id,),
                )
            cur.execute("INSERT INTO inventory (id, eggs, rare_candies) VALUES (1, 0, 0) ON CONFLICT (id) DO NOTHING;")
            cur.execute(
                "INSERT INTO user_settings (id, language, distance_unit) VALUES (1, %s, %s) ON CONFLICT (id) DO NOTHING;",
                (settings.DEFAULT_LANGUAGE, settings.DEFAULT_DISTANCE_UNIT),
            )
        log_utils.log_message(f"[PostgresDal] Seeded {len(species)} species")
        return True

    def list_species(self) -> List[Species]:
        with self._cursor() as cur:
            cur.execute(f"SELECT {_SPECIES_COLUMNS} FROM species ORDER BY species_id;")
            return [Species.model_validate(row) for row in cur.fetchall()]

    def get_species(self, species_id: int) -> Optional[Species]:
        with self._cursor() as cur:
            cur.execute(f"SELECT {_SPECIES_COLUMNS} FROM species WHERE species_id = %s;", (species_id,))
            row = cur.fetchone()
        return Species.model_validate(row) if row else None

    # --- Inventory -----------------------------------------------------------
    def get_inventory(self) -> Inventory:
        with self._cursor() as cur:
            cur.execute("SELECT eggs, rare_candies FROM inventory WHERE id = 1;")
            row = cur.fetchone()
        return Inventory.model_validate(row) if row else Inventory()

    def add_currency(self, eggs: int, candies: int) -> Inventory:
        check_amounts(eggs, candies)
        with self._cursor() as cur:
            cur.execute(
                """
                INSERT INTO inventory (id, eggs, rare_candies) VALUES (1, %s, %s)
                ON CONFLICT (id) DO UPDATE SET
                    eggs = inventory.eggs + EXCLUDED.eggs,
                    rare_candies = inventory.rare_candies + EXCLUDED.rare_candies
                RETURNING eggs, rare_candies;
                """,
                (eggs, candies),
            )
            bag = Inventory.model_validate(cur.fetchone())
        log_utils.log_message(
            f"[bag] +{eggs} eggs, +{candies} candies. Now: eggs={bag.eggs}, candies={bag.rare_candies}"
        )
        return bag

    def try_consume(self, eggs: int, candies: int) -> bool:
        check_amounts(eggs, candies)
        with self._cursor() as cur:
            cur.execute(
                """
                UPDATE inventory
                SET eggs = eggs - %s, rare_candies = rare_candies - %s
                WHERE id = 1 AND eggs >= %s AND rare_candies >= %s
                RETURNING eggs, rare_candies;
                """,
                (eggs, candies, eggs, candies),
            )
            row = cur.fetchone()
        if row is None:
            log_utils.log_message(f"[bag] Declined -{eggs} eggs, -{candies} candies")
            return False
        log_utils.log_message(
            f"[bag] -{eggs} eggs, -{candies} candies. Now: eggs={row['eggs']}, candies={row['rare_candies']}"
        )
        return True

    # --- Ownership -----------------------------------------------------------
    def add_owned_creature(self, species_id: int, acquired_at: datetime) -> OwnedCreature:
        with self._cursor() as cur:
            cur.execute(
                f"""
                INSERT INTO owned_creatures (origin_species_id, current_species_id, acquired_at)
                VALUES (%s, %s, %s)
                RETURNING {_CREATURE_COLUMNS};
                """,
                (species_id, species_id, acquired_at),
            )
            creature = OwnedCreature.model_validate(cur.fetchone())
        log_utils.log_message(f"[PostgresDal] Creature #{creature.instance_id} added as species {species_id}")
        return creature

    def get_owned_creature(self, instance_id: int) -> Optional[OwnedCreature]:
        with self._cursor() as cur:
            cur.execute(
                f"SELECT {_CREATURE_COLUMNS} FROM owned_creatures WHERE instance_id = %s;",
                (instance_id,),
            )
            row = cur.fetchone()
        return OwnedCreature.model_validate(row) if row else None

    def list_owned_creatures(self) -> List[OwnedCreature]:
        with self._cursor() as cur:
            cur.execute(f"SELECT {_CREATURE_COLUMNS} FROM owned_creatures ORDER BY instance_id;")
            return [OwnedCreature.model_validate(row) for row in cur.fetchall()]

    def update_creature_species(self, instance_id: int, species_id: int) -> OwnedCreature:
        with self._cursor() as cur:
            cur.execute(
                f"""
                UPDATE owned_creatures SET current_species_id = %s
                WHERE instance_id = %s
                RETURNING {_CREATURE_COLUMNS};
                """,
                (species_id, instance_id),
            )
            row = cur.fetchone()
        if row is None:
            raise KeyError(instance_id)
        return OwnedCreature.model_validate(row)

    # --- Collection ----------------------------------------------------------
    def list_collection_entries(self) -> List[CollectionEntry]:
        with self._cursor() as cur:
            cur.execute("SELECT species_id, unlocked FROM collection_entries ORDER BY species_id;")
            return [CollectionEntry.model_validate(row) for row in cur.fetchall()]

    def unlock_collection_entry(self, species_id: int) -> bool:
        with self._cursor() as cur:
            cur.execute(
                """
                INSERT INTO collection_entries (species_id, unlocked) VALUES (%s, TRUE)
                ON CONFLICT (species_id) DO UPDATE SET unlocked = TRUE
                WHERE collection_entries.unlocked = FALSE
                RETURNING species_id;
                """,
                (species_id,),
            )
            changed = cur.fetchone() is not None
        if changed:
            log_utils.log_message(f"[PostgresDal] Collection entry {species_id} unlocked")
        return changed

    # --- Workouts ------------------------------------------------------------
    def append_workout(self, record: WorkoutRecord) -> WorkoutRecord:
        with self._cursor() as cur:
            cur.execute(
                f"""
                INSERT INTO workouts (
                    start_time, end_time, distance_km, steps, source, eggs_earned, candies_earned
                ) VALUES (%s, %s, %s, %s, %s, %s, %s)
                RETURNING {_WORKOUT_COLUMNS};
                """,
                (
                    record.start_time,
                    record.end_time,
                    record.distance_km,
                    record.steps,
                    record.source.value,
                    record.eggs_earned,
                    record.candies_earned,
                ),
            )
            saved = WorkoutRecord.model_validate(cur.fetchone())
        log_utils.log_message(
            f"[PostgresDal] Workout #{saved.workout_id} saved ({saved.distance_km:.2f} km, {saved.source.value})"
        )
        return saved

    def list_workouts(self) -> List[WorkoutRecord]:
        with self._cursor() as cur:
            cur.execute(f"SELECT {_WORKOUT_COLUMNS} FROM workouts ORDER BY start_time DESC;")
            return [WorkoutRecord.model_validate(row) for row in cur.fetchall()]

    def total_distance_km(self) -> float:
        with self._cursor() as cur:
            cur.execute("SELECT COALESCE(SUM(distance_km), 0) AS total FROM workouts;")
            return float(cur.fetchone()["total"])

    # --- User settings -------------------------------------------------------
    def get_user_settings(self) -> UserSettings:
        with self._cursor() as cur:
            cur.execute("SELECT language, distance_unit FROM user_settings WHERE id = 1;")
            row = cur.fetchone()
        if row is None:
            return UserSettings(
                language=settings.DEFAULT_LANGUAGE,
                distance_unit=settings.DEFAULT_DISTANCE_UNIT,
            )
        return UserSettings.model_validate(row)

    def save_user_settings(self, user_settings: UserSettings) -> None:
        with self._cursor() as cur:
            cur.execute(
                """
                INSERT INTO user_settings (id, language, distance_unit) VALUES (1, %s, %s)
                ON CONFLICT (id) DO UPDATE SET
                    language = EXCLUDED.language, distance_unit = EXCLUDED.distance_unit;
                """,
                (user_settings.language, user_settings.distance_unit),
            )
        log_utils.log_message(f"[PostgresDal] User settings saved: {user_settings.model_dump()}")
