"""
Reward coordinator: the only code that spends currency.

`acquire` (open an egg) and `evolve` each touch three stores: inventory,
owned creatures and the collection log. The stores commit independently, so
each sequence runs under one process-wide lock, and a failure after currency
was consumed is compensated with a refund instead of a rollback.
"""

import random
import threading
from datetime import datetime, timezone
from typing import Callable, List, Optional

from eggrun.config import settings
from eggrun.core.catalog import Catalog
from eggrun.core.models import EvolutionOutcome, Species, WorkoutRecord
from eggrun.data_access.dal import DataAccessLayer
from eggrun.errors import (
    DataIntegrityError,
    RewardErrorCode,
    RewardResult,
    StoreUnavailableError,
)
from eggrun.infra import log_utils


# Shared by every coordinator in the process, so two Orchestrators over the
# same store still run their acquire and evolve sequences one at a time.
_lock = threading.RLock()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RewardCoordinator:
    def __init__(
        self,
        dal: DataAccessLayer,
        catalog: Optional[Catalog] = None,
        rng: Optional[random.Random] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.dal = dal
        self._catalog = catalog
        self._rng = rng or random.Random()
        self._clock = clock

    @property
    def catalog(self) -> Catalog:
        # Loaded lazily so a coordinator can be built before the first seed.
        if self._catalog is None or len(self._catalog) == 0:
            self._catalog = Catalog.from_dal(self.dal)
        return self._catalog

    # --- Workout credit ------------------------------------------------------
    def credit_workout(self, record: WorkoutRecord) -> WorkoutRecord:
        """
        Persist a finished workout, then credit its rewards.

        No retry and no rollback: if the credit fails the record stays saved
        and StoreUnavailableError propagates so the caller can report it.
        """
        saved = self.dal.append_workout(record)
        try:
            if saved.eggs_earned or saved.candies_earned:
                self.dal.add_currency(saved.eggs_earned, saved.candies_earned)
        except StoreUnavailableError:
            log_utils.log_message(
                f"[workout] Workout #{saved.workout_id} saved but crediting "
                f"eggs={saved.eggs_earned}, candies={saved.candies_earned} failed",
                "ERROR",
            )
            raise
        return saved

    # --- Refund helper -------------------------------------------------------
    def _refund(self, eggs: int, candies: int, context: str) -> bool:
        try:
            self.dal.add_currency(eggs, candies)
        except StoreUnavailableError as e:
            log_utils.log_message(
                f"[{context}] Refund of eggs={eggs}, candies={candies} failed: {e}. "
                "Inventory may be inconsistent.",
                "ERROR",
            )
            return False
        log_utils.log_message(f"[{context}] Refunded eggs={eggs}, candies={candies}", "WARN")
        return True

    # --- Acquisition ---------------------------------------------------------
    def eligible_pool(self) -> List[Species]:
        """Base-stage species that have never hatched for this user."""
        hatched = {c.origin_species_id for c in self.dal.list_owned_creatures()}
        return [s for s in self.catalog.base_species() if s.species_id not in hatched]

    def acquire(self) -> RewardResult:
        """Spend an egg and a rare candy to hatch a random unowned base-stage creature."""
        eggs, candies = settings.EGG_HATCH_EGGS, settings.EGG_HATCH_CANDIES
        with _lock:
            try:
                if not self.dal.try_consume(eggs, candies):
                    return RewardResult.failure(
                        RewardErrorCode.INSUFFICIENT_RESOURCES,
                        f"Hatching needs {eggs} egg(s) and {candies} rare candy(ies)",
                    )
            except StoreUnavailableError as e:
                log_utils.log_message(f"[hatch] Inventory unavailable: {e}", "ERROR")
                return RewardResult.failure(RewardErrorCode.STORE_UNAVAILABLE, str(e))

            try:
                # Recomputed on every call, under the lock, never cached.
                pool = self.eligible_pool()
                if not pool:
                    refunded = self._refund(eggs, candies, "hatch")
                    log_utils.log_message("[hatch] Every base-stage species already hatched")
                    return RewardResult.failure(
                        RewardErrorCode.NO_ELIGIBLE_SPECIES,
                        "All base-stage species have already been obtained",
                        inconsistent=not refunded,
                    )

                chosen = self._rng.choice(pool)
                creature = self.dal.add_owned_creature(chosen.species_id, self._clock())
                self.dal.unlock_collection_entry(chosen.species_id)
            except StoreUnavailableError as e:
                refunded = self._refund(eggs, candies, "hatch")
                log_utils.log_message(f"[hatch] Store failure after consuming currency: {e}", "ERROR")
                return RewardResult.failure(
                    RewardErrorCode.STORE_UNAVAILABLE, str(e), inconsistent=not refunded
                )

        log_utils.log_message(
            f"[hatch] Creature #{creature.instance_id} hatched as {chosen.name} ({chosen.species_id}) "
            f"from a pool of {len(pool)}"
        )
        return RewardResult.success(creature, f"{chosen.name} hatched")

    # --- Evolution -----------------------------------------------------------
    def evolution_preview(self, instance_id: int) -> Optional[Species]:
        """The species a creature would evolve into, or None."""
        creature = self.dal.get_owned_creature(instance_id)
        if creature is None:
            return None
        current = self.catalog.get(creature.current_species_id)
        return self.catalog.get(current.evolves_to) if current.can_evolve else None

    def evolve(self, instance_id: int) -> RewardResult:
        """Spend a rare candy to move an owned creature one step along its chain."""
        candies = settings.EVOLVE_CANDIES
        with _lock:
            try:
                creature = self.dal.get_owned_creature(instance_id)
            except StoreUnavailableError as e:
                return RewardResult.failure(RewardErrorCode.STORE_UNAVAILABLE, str(e))
            if creature is None:
                return RewardResult.failure(
                    RewardErrorCode.CREATURE_NOT_FOUND, f"No creature with id {instance_id}"
                )

            from_id = creature.current_species_id
            try:
                current = self.catalog.get(from_id)
                if not current.can_evolve:
                    return RewardResult.failure(
                        RewardErrorCode.CANNOT_EVOLVE,
                        f"Species {from_id} has no further evolution",
                    )
                target = self.catalog.get(current.evolves_to)
            except DataIntegrityError as e:
                log_utils.log_message(f"[evolve] Creature #{instance_id}: {e}", "ERROR")
                return RewardResult.failure(RewardErrorCode.DATA_INTEGRITY, str(e))
            except StoreUnavailableError as e:
                return RewardResult.failure(RewardErrorCode.STORE_UNAVAILABLE, str(e))

            try:
                if not self.dal.try_consume(0, candies):
                    return RewardResult.failure(
                        RewardErrorCode.INSUFFICIENT_CANDIES,
                        f"Evolving needs {candies} rare candy(ies)",
                    )
            except StoreUnavailableError as e:
                log_utils.log_message(f"[evolve] Inventory unavailable: {e}", "ERROR")
                return RewardResult.failure(RewardErrorCode.STORE_UNAVAILABLE, str(e))

            try:
                self.dal.update_creature_species(instance_id, target.species_id)
                self.dal.unlock_collection_entry(target.species_id)
            except (StoreUnavailableError, KeyError) as e:
                refunded = self._refund(0, candies, "evolve")
                log_utils.log_message(
                    f"[evolve] Store failure after consuming candy for #{instance_id}: {e!r}", "ERROR"
                )
                return RewardResult.failure(
                    RewardErrorCode.STORE_UNAVAILABLE, str(e), inconsistent=not refunded
                )

        log_utils.log_message(
            f"[evolve] Creature #{instance_id} evolved {from_id} -> {target.species_id} ({target.name})"
        )
        return RewardResult.success(
            EvolutionOutcome(
                instance_id=instance_id,
                from_species_id=from_id,
                to_species_id=target.species_id,
            ),
            f"Evolved into {target.name}",
        )

    # --- Reconciliation ------------------------------------------------------
    def reconcile_collection(self) -> List[int]:
        """
        Re-unlock every species each owned creature has been, from the one it
        hatched as up to its current form. Safe to run any number of times.

        Returns:
            Species ids that were locked and are now unlocked.
        """
        fixed: List[int] = []
        with _lock:
            for creature in self.dal.list_owned_creatures():
                path = self.catalog.path_between(
                    creature.origin_species_id, creature.current_species_id
                )
                for species in path:
                    if self.dal.unlock_collection_entry(species.species_id):
                        fixed.append(species.species_id)
        if fixed:
            log_utils.log_message(f"[reconcile] Unlocked missing collection entries: {fixed}", "WARN")
        return fixed
