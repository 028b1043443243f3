import pytest

from eggrun.core.catalog import Catalog, build_species, load_catalog_records
from eggrun.core.models import Species
from eggrun.errors import DataIntegrityError


def _record(sid, **links):
    rec = {"id": sid, "name": f"Species {sid}", "type1": "normal", "type2": ""}
    rec.update(links)
    return rec


def test_build_species_completes_links():
    species = build_species([
        _record(1, evolvesTo=2),
        _record(2, evolvesTo=3),
        _record(3),
    ])
    by_id = {s.species_id: s for s in species}
    assert by_id[2].evolves_from == 1
    assert by_id[3].evolves_from == 2
    assert by_id[1].type2 is None


def test_build_species_rejects_two_successors():
    with pytest.raises(DataIntegrityError):
        build_species([_record(1, evolvesTo=2), _record(2), _record(3, evolvesFrom=1)])


def test_build_species_rejects_unknown_reference():
    with pytest.raises(DataIntegrityError):
        build_species([_record(1, evolvesTo=7)])


def test_build_species_rejects_cycles():
    with pytest.raises(DataIntegrityError):
        build_species([_record(1, evolvesTo=2), _record(2, evolvesTo=1)])


def test_evolution_stage_and_chain(species):
    catalog = Catalog(species)
    assert [catalog.evolution_stage(i) for i in (1, 2, 3, 4, 5, 6)] == [0, 1, 2, 0, 1, 0]
    assert [s.species_id for s in catalog.chain(2)] == [1, 2, 3]
    assert [s.species_id for s in catalog.chain(6)] == [6]
    assert [s.species_id for s in catalog.base_species()] == [1, 4, 6]
    assert [s.species_id for s in catalog.path_between(1, 3)] == [1, 2, 3]
    assert (catalog.evolves_from(2), catalog.evolves_to(2)) == (1, 3)
    assert catalog.evolves_to(3) == 0
    assert catalog.evolves_from(4) == 0


def test_missing_species_is_an_integrity_error(species):
    with pytest.raises(DataIntegrityError):
        Catalog(species).get(404)


def test_walk_terminates_on_a_cyclic_table():
    # Built directly, skipping build_species' validation
    looped = Catalog([
        Species(species_id=1, name="A", type1="normal", evolves_from=2, evolves_to=2),
        Species(species_id=2, name="B", type1="normal", evolves_from=1, evolves_to=1),
    ])
    with pytest.raises(DataIntegrityError):
        looped.evolution_stage(1)


def test_bundled_catalog_is_valid():
    species = build_species(load_catalog_records())
    catalog = Catalog(species)
    assert len(catalog) == len(species) > 0
    assert catalog.base_species()
    assert all(s.name_alt for s in species)
