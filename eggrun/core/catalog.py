"""
Creature catalog: loading the bundled species file and answering
evolution-chain questions.

Evolution links live in the catalog records themselves (`evolvesFrom` /
`evolvesTo`), so adding a species never means touching code.
"""

import json
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional

from eggrun.config import settings
from eggrun.core.models import Species
from eggrun.errors import DataIntegrityError


def load_catalog_records(path: Optional[Path] = None) -> List[Dict[str, Any]]:
    """Read the raw species records from the catalog JSON file."""
    path = path or settings.CATALOG_PATH
    with Path(path).open("r", encoding="utf-8") as f:
        return json.load(f)


def build_species(records: Iterable[Dict[str, Any]]) -> List[Species]:
    """
    Turn raw catalog records into Species, completing evolution links.

    A record may give either side of a link; the other side is filled in.
    Conflicting links (two predecessors, two successors) and links to ids
    that are not in the catalog raise DataIntegrityError.
    """
    rows: Dict[int, Dict[str, Any]] = {}
    for rec in records:
        sid = int(rec["id"])
        if sid in rows:
            raise DataIntegrityError(f"Duplicate species id {sid}")
        rows[sid] = {
            "species_id": sid,
            "name": rec["name"],
            "name_alt": rec.get("nameAlt") or "",
            "type1": rec["type1"],
            "type2": rec.get("type2") or None,
            "description": rec.get("description") or "",
            "description_alt": rec.get("descriptionAlt") or "",
            "evolves_from": int(rec.get("evolvesFrom") or 0),
            "evolves_to": int(rec.get("evolvesTo") or 0),
        }

    def link(field: str, sid: int, other: int) -> None:
        current = rows[sid][field]
        if current and current != other:
            raise DataIntegrityError(
                f"Species {sid} has conflicting {field}: {current} and {other}"
            )
        rows[sid][field] = other

    for sid, row in list(rows.items()):
        for field, mirror in (("evolves_to", "evolves_from"), ("evolves_from", "evolves_to")):
            other = row[field]
            if not other:
                continue
            if other not in rows:
                raise DataIntegrityError(f"Species {sid} links to unknown species {other}")
            if other == sid:
                raise DataIntegrityError(f"Species {sid} evolves into itself")
            link(mirror, other, sid)

    species = [Species(**rows[sid]) for sid in sorted(rows)]
    # Rejects cycles: evolution_stage raises on a chain that never reaches a base form.
    catalog = Catalog(species)
    for s in species:
        catalog.evolution_stage(s.species_id)
    return species


class Catalog:
    """
    Read-only view over the species table.

    Built once and shared; the core never mutates it. The acyclicity of the
    evolution graph is the loader's job, but every chain walk here is still
    bounded by the catalog size so a bad table cannot hang the caller.
    """

    def __init__(self, species: Iterable[Species]):
        self._by_id: Dict[int, Species] = {s.species_id: s for s in species}

    @classmethod
    def from_dal(cls, dal) -> "Catalog":
        return cls(dal.list_species())

    def __len__(self) -> int:
        return len(self._by_id)

    def __iter__(self) -> Iterator[Species]:
        return iter(sorted(self._by_id.values(), key=lambda s: s.species_id))

    def __contains__(self, species_id: int) -> bool:
        return species_id in self._by_id

    def get(self, species_id: int) -> Species:
        try:
            return self._by_id[species_id]
        except KeyError:
            raise DataIntegrityError(f"Species {species_id} is not in the catalog") from None

    def evolves_from(self, species_id: int) -> int:
        return self.get(species_id).evolves_from

    def evolves_to(self, species_id: int) -> int:
        return self.get(species_id).evolves_to

    def evolution_stage(self, species_id: int) -> int:
        """Number of evolutions between the chain's base form and this species (base = 0)."""
        stage = 0
        current = self.get(species_id)
        while current.evolves_from:
            stage += 1
            if stage > len(self._by_id):
                raise DataIntegrityError(f"Evolution chain of species {species_id} does not terminate")
            current = self.get(current.evolves_from)
        return stage

    def base_species(self) -> List[Species]:
        return [s for s in self if s.is_base]

    def chain(self, species_id: int) -> List[Species]:
        """The whole evolution chain containing `species_id`, base form first."""
        root = self.get(species_id)
        for _ in range(self.evolution_stage(species_id)):
            root = self.get(root.evolves_from)

        out = [root]
        while out[-1].evolves_to:
            if len(out) >= len(self._by_id):
                raise DataIntegrityError(f"Evolution chain of species {species_id} does not terminate")
            out.append(self.get(out[-1].evolves_to))
        return out

    def path_between(self, from_id: int, to_id: int) -> List[Species]:
        """Species from `from_id` up to and including `to_id` along one chain."""
        chain = self.chain(from_id)
        ids = [s.species_id for s in chain]
        if to_id not in ids or ids.index(to_id) < ids.index(from_id):
            raise DataIntegrityError(f"Species {to_id} is not an evolution of {from_id}")
        return chain[ids.index(from_id): ids.index(to_id) + 1]
