"""Tests for the Postgres DAL implementation.

These tests require a running PostgreSQL instance. If the environment variable
`TEST_DATABASE_URL` is not set, the tests will be skipped. The tests mirror the
JSON DAL round-trip to ensure functional parity.
"""

from __future__ import annotations

import os
import threading
from datetime import datetime, timezone
from pathlib import Path

import pytest

TEST_DB_URL = os.getenv("TEST_DATABASE_URL")

if TEST_DB_URL:
    import psycopg
    from eggrun.data_access.postgres_dal import PostgresDal
else:  # pragma: no cover - environment without postgres
    PostgresDal = None

pytestmark = pytest.mark.skipif(PostgresDal is None, reason="TEST_DATABASE_URL not configured")

SCHEMA = Path(__file__).resolve().parent.parent / "init-db" / "schema.sql"


@pytest.fixture
def pg_dal(species):
    with psycopg.connect(TEST_DB_URL, autocommit=True) as conn:
        with conn.cursor() as cur:
            cur.execute(
                "DROP TABLE IF EXISTS workouts, owned_creatures, collection_entries, "
                "inventory, user_settings, species CASCADE;"
            )
            cur.execute(SCHEMA.read_text())
    dal = PostgresDal(TEST_DB_URL)
    dal.seed_catalog(species)
    yield dal
    dal.close()


def test_postgres_dal_roundtrip(pg_dal):
    now = datetime(2024, 5, 1, 7, 30, tzinfo=timezone.utc)

    assert [s.species_id for s in pg_dal.list_species()] == [1, 2, 3, 4, 5, 6]
    assert pg_dal.get_species(2).evolves_from == 1

    pg_dal.add_currency(2, 3)
    assert pg_dal.try_consume(1, 1)
    assert not pg_dal.try_consume(2, 0)
    bag = pg_dal.get_inventory()
    assert (bag.eggs, bag.rare_candies) == (1, 2)

    creature = pg_dal.add_owned_creature(1, now)
    evolved = pg_dal.update_creature_species(creature.instance_id, 2)
    assert evolved.instance_id == creature.instance_id
    assert evolved.origin_species_id == 1 and evolved.current_species_id == 2

    assert pg_dal.unlock_collection_entry(2) is True
    assert pg_dal.unlock_collection_entry(2) is False

    assert pg_dal.seed_catalog([]) is False


def test_postgres_try_consume_is_serialized(pg_dal):
    pg_dal.add_currency(5, 5)
    results = []

    def consume():
        results.append(pg_dal.try_consume(1, 1))

    threads = [threading.Thread(target=consume) for _ in range(20)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    bag = pg_dal.get_inventory()
    assert results.count(True) == 5
    assert (bag.eggs, bag.rare_candies) == (0, 0)
