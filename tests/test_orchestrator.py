from datetime import timedelta

import pytest

from eggrun.core.dispatcher import RewardDispatcher
from eggrun.core.models import WorkoutSource
from eggrun.core.orchestrator import Orchestrator
from eggrun.data_access.json_dal import JsonDal
from eggrun.errors import RewardErrorCode, StoreUnavailableError, WorkoutStateError


class CreditFailsDal(JsonDal):
    def add_currency(self, eggs: int, candies: int):
        raise StoreUnavailableError("inventory unavailable")


@pytest.fixture
def orchestrator(dal, now):
    return Orchestrator(dal, clock=lambda: now)


def test_seed_bundled_catalog_only_on_first_run():
    orchestrator = Orchestrator(JsonDal())
    assert orchestrator.seed() is True
    entries = orchestrator.get_collection_entries()
    assert entries and not any(e.unlocked for e in entries)
    assert orchestrator.seed() is False


def test_finish_workout_credits_exact_rewards(orchestrator, dal):
    dal.add_currency(2, 1)
    orchestrator.start_workout()
    orchestrator.record_step_delta(120_000)
    orchestrator.record_step_delta(137_143)  # 17_143 steps ~ 12.0 km
    orchestrator.pause_workout()
    record = orchestrator.finish_workout()

    assert record.workout_id == 1
    assert record.source == WorkoutSource.SENSOR
    assert (record.eggs_earned, record.candies_earned) == (1, 2)
    bag = orchestrator.get_inventory()
    assert (bag.eggs, bag.rare_candies) == (3, 3)
    assert orchestrator.get_workouts() == [record]


def test_short_workout_earns_nothing(orchestrator):
    orchestrator.start_workout()
    record = orchestrator.finish_workout(manual_distance_km=4.999)
    assert (record.eggs_earned, record.candies_earned) == (0, 0)
    bag = orchestrator.get_inventory()
    assert (bag.eggs, bag.rare_candies) == (0, 0)


def test_finish_without_session_raises(orchestrator):
    with pytest.raises(WorkoutStateError):
        orchestrator.finish_workout()
    assert not orchestrator.record_step_delta(100)


def test_second_start_is_rejected(orchestrator):
    orchestrator.start_workout()
    with pytest.raises(WorkoutStateError):
        orchestrator.start_workout()
    orchestrator.finish_workout()
    orchestrator.start_workout()  # a finished session can be followed by a new one


def test_manual_workout(orchestrator, now):
    record = orchestrator.log_manual_workout(15.0, start_time=now - timedelta(hours=2))
    assert record.steps == 0
    assert record.source == WorkoutSource.MANUAL
    assert record.start_time == now - timedelta(hours=2)
    bag = orchestrator.get_inventory()
    assert (bag.eggs, bag.rare_candies) == (1, 3)
    assert orchestrator.get_total_distance_km() == pytest.approx(15.0)


def test_credit_failure_is_reported_and_record_kept(species, now):
    dal = CreditFailsDal()
    dal.seed_catalog(species)
    orchestrator = Orchestrator(dal, clock=lambda: now)

    with pytest.raises(StoreUnavailableError):
        orchestrator.log_manual_workout(10.0)
    assert len(dal.list_workouts()) == 1


def test_run_hatch_and_evolve(orchestrator, dal, now):
    dal.add_owned_creature(1, now)
    dal.add_owned_creature(6, now)
    orchestrator.log_manual_workout(10.0)  # 1 egg, 2 candies

    hatched = orchestrator.acquire_from_egg()
    assert hatched.ok and hatched.value.current_species_id == 4
    assert orchestrator.evolution_preview(hatched.value.instance_id).species_id == 5

    evolved = orchestrator.evolve(hatched.value.instance_id)
    assert evolved.ok and evolved.value.to_species_id == 5

    assert orchestrator.get_obtained_count() == 3
    assert [e.species_id for e in orchestrator.get_unlocked_entries()] == [4, 5]
    bag = orchestrator.get_inventory()
    assert (bag.eggs, bag.rare_candies) == (0, 0)


def test_user_settings_updates(orchestrator):
    assert orchestrator.get_user_settings().language == "es"
    orchestrator.update_language("en")
    orchestrator.update_distance_unit("mi")
    prefs = orchestrator.get_user_settings()
    assert (prefs.language, prefs.distance_unit) == ("en", "mi")
    with pytest.raises(ValueError):
        orchestrator.update_distance_unit("furlongs")


def test_dispatcher_reports_outcomes_through_futures(orchestrator, dal):
    dal.add_currency(3, 3)
    with RewardDispatcher(orchestrator, max_workers=3) as dispatcher:
        futures = [dispatcher.submit_acquire() for _ in range(4)]
        results = [f.result(timeout=10) for f in futures]

    assert sum(r.ok for r in results) == 3
    assert [r.error for r in results if not r.ok] == [RewardErrorCode.INSUFFICIENT_RESOURCES]


def test_dispatcher_surfaces_exceptions(orchestrator):
    with RewardDispatcher(orchestrator, max_workers=1) as dispatcher:
        future = dispatcher.submit_finish_workout()
        with pytest.raises(WorkoutStateError):
            future.result(timeout=10)
