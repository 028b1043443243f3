import threading
from datetime import timedelta

import pytest

from eggrun.config import settings
from eggrun.core.models import UserSettings, WorkoutRecord, WorkoutSource
from eggrun.data_access.json_dal import JsonDal
from eggrun.errors import StoreUnavailableError


def test_json_dal_roundtrip(dal, now):
    # Catalog and first-run rows
    assert [s.species_id for s in dal.list_species()] == [1, 2, 3, 4, 5, 6]
    assert dal.get_species(2).evolves_from == 1
    assert dal.get_species(99) is None
    assert all(not e.unlocked for e in dal.list_collection_entries())
    assert dal.get_inventory().eggs == 0 and dal.get_inventory().rare_candies == 0
    assert dal.get_user_settings() == UserSettings(language="es", distance_unit="km")

    # Inventory
    bag = dal.add_currency(2, 3)
    assert (bag.eggs, bag.rare_candies) == (2, 3)
    assert dal.try_consume(1, 1)
    assert not dal.try_consume(2, 0)
    assert (dal.get_inventory().eggs, dal.get_inventory().rare_candies) == (1, 2)

    # Ownership
    first = dal.add_owned_creature(1, now)
    second = dal.add_owned_creature(4, now)
    assert (first.instance_id, second.instance_id) == (1, 2)
    evolved = dal.update_creature_species(first.instance_id, 2)
    assert evolved.current_species_id == 2 and evolved.origin_species_id == 1
    assert dal.get_owned_creature(1).acquired_at == now
    with pytest.raises(KeyError):
        dal.update_creature_species(42, 2)

    # Collection
    assert dal.unlock_collection_entry(2) is True
    assert dal.unlock_collection_entry(2) is False
    assert [e.species_id for e in dal.list_collection_entries() if e.unlocked] == [2]


def test_try_consume_never_applies_partially(dal):
    dal.add_currency(1, 0)
    assert not dal.try_consume(1, 1)
    bag = dal.get_inventory()
    assert (bag.eggs, bag.rare_candies) == (1, 0)


def test_negative_amounts_are_rejected(dal):
    with pytest.raises(ValueError):
        dal.add_currency(-1, 0)
    with pytest.raises(ValueError):
        dal.try_consume(0, -1)


def test_concurrent_consumers_never_overdraw(dal):
    dal.add_currency(10, 10)
    results = []

    def consume():
        results.append(dal.try_consume(1, 1))

    threads = [threading.Thread(target=consume) for _ in range(40)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    bag = dal.get_inventory()
    assert results.count(True) == 10
    assert (bag.eggs, bag.rare_candies) == (0, 0)


def test_seed_is_a_noop_once_progress_exists(dal, species, now):
    dal.add_owned_creature(1, now)
    dal.unlock_collection_entry(1)

    assert dal.seed_catalog(species[:2]) is False
    assert len(dal.list_species()) == 6
    assert dal.list_collection_entries()[0].unlocked


def test_instance_ids_are_never_reused(dal, now):
    ids = [dal.add_owned_creature(6, now).instance_id for _ in range(3)]
    # A fresh DAL over the same files continues the sequence
    assert JsonDal().add_owned_creature(6, now).instance_id == max(ids) + 1


def test_workouts_newest_first_with_total(dal, now):
    for i, km in enumerate([3.0, 12.5, 5.0]):
        dal.append_workout(
            WorkoutRecord(
                start_time=now + timedelta(days=i),
                end_time=now + timedelta(days=i, hours=1),
                distance_km=km,
                source=WorkoutSource.MANUAL,
            )
        )
    workouts = dal.list_workouts()
    assert [w.distance_km for w in workouts] == [5.0, 12.5, 3.0]
    assert [w.workout_id for w in workouts] == [3, 2, 1]
    assert dal.total_distance_km() == pytest.approx(20.5)


def test_user_settings_roundtrip(dal):
    dal.save_user_settings(UserSettings(language="en", distance_unit="mi"))
    assert JsonDal().get_user_settings() == UserSettings(language="en", distance_unit="mi")


def test_corrupt_file_raises_store_unavailable(dal):
    settings.inventory_path.write_text("{not json", encoding="utf-8")
    with pytest.raises(StoreUnavailableError):
        dal.get_inventory()
