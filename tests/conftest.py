from datetime import datetime, timezone
from typing import List

import pytest

from eggrun.config import settings
from eggrun.core.models import Species
from eggrun.data_access.json_dal import JsonDal


@pytest.fixture(autouse=True)
def isolated_state(tmp_path, monkeypatch):
    # Redirect every state file and the log into the temp directory
    monkeypatch.setattr(settings, "PROJECT_ROOT", tmp_path)
    return tmp_path


def make_species() -> List[Species]:
    """Two chains (1 -> 2 -> 3 and 4 -> 5) and one single-stage species (6)."""
    return [
        Species(species_id=1, name="Brotín", name_alt="Sproutle", type1="grass", evolves_to=2),
        Species(species_id=2, name="Ramaje", name_alt="Branchling", type1="grass", evolves_from=1, evolves_to=3),
        Species(species_id=3, name="Robledón", name_alt="Oakenguard", type1="grass", type2="rock", evolves_from=2),
        Species(species_id=4, name="Chispita", name_alt="Emberkit", type1="fire", evolves_to=5),
        Species(species_id=5, name="Brasazorro", name_alt="Cinderfox", type1="fire", evolves_from=4),
        Species(species_id=6, name="Lunar", name_alt="Moonmite", type1="fairy"),
    ]


@pytest.fixture
def dal() -> JsonDal:
    dal = JsonDal()
    dal.seed_catalog(make_species())
    return dal


@pytest.fixture
def now() -> datetime:
    return datetime(2024, 5, 1, 7, 30, tzinfo=timezone.utc)


@pytest.fixture
def species() -> List[Species]:
    return make_species()
