from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping

from . import duplication
from .models.structure import Space, Structure

logger = logging.getLogger(__name__)

# Fields a duplicate never takes over from its parent.
_DUPLICATE_OWN_FIELDS = (
    "id",
    "parent_id",
    "is_duplicate",
    "duplicate_number",
    "duplicate_parent_id",
    "duplicate_rate",
)


class StructureTree:
    """Ordered structures of one proposal, parents followed by their duplicates.

    Every mutation builds a new list and new structure objects; anything handed
    out earlier is left as it was.
    """

    def __init__(self, structures: Iterable[Structure | Mapping[str, Any]] = ()) -> None:
        self._structures: list[Structure] = []
        self.set_structures(structures)

    @property
    def structures(self) -> tuple[Structure, ...]:
        return tuple(self._structures)

    def get(self, structure_id: str) -> Structure | None:
        return next((s for s in self._structures if s.id == structure_id), None)

    def duplicates_of(self, structure_id: str) -> list[Structure]:
        return duplication.duplicates_of(self._structures, structure_id)

    def set_structures(self, structures: Iterable[Structure | Mapping[str, Any]]) -> None:
        self._structures = [Structure.model_validate(s) for s in structures]

    def update_structure(self, structure_id: str, updates: Mapping[str, Any]) -> Structure | None:
        """Merge ``updates`` into a structure and mirror them onto its duplicates."""
        target = self.get(structure_id)
        if target is None:
            logger.debug("update_structure: unknown structure", extra={"structure_id": structure_id})
            return None

        changes = {key: value for key, value in updates.items() if key != "id"}
        updated = Structure.model_validate({**target.model_dump(), **changes})

        result: list[Structure] = []
        for structure in self._structures:
            if structure.id == structure_id:
                result.append(updated)
            elif structure.duplicate_parent_id == structure_id:
                result.append(self._mirror(structure, updated, changes))
            else:
                result.append(structure)
        self._structures = result
        return updated

    def _mirror(self, duplicate: Structure, parent: Structure, changes: Mapping[str, Any]) -> Structure:
        mirrored = dict(changes)
        for field in _DUPLICATE_OWN_FIELDS:
            mirrored[field] = getattr(duplicate, field)
        if changes.get("name"):
            mirrored["name"] = duplication.duplicate_name(parent.name, duplicate.duplicate_number or 0)
        else:
            mirrored["name"] = duplicate.name
        if "levels" in changes:
            mirrored["levels"] = duplication.mirror_levels(parent.levels, duplicate.levels)
        return Structure.model_validate({**duplicate.model_dump(), **mirrored})

    def update_space(
        self,
        structure_id: str,
        level_id: str,
        space_id: str,
        updates: Mapping[str, Any],
    ) -> Space | None:
        structure = self.get(structure_id)
        level = next((lvl for lvl in structure.levels if lvl.id == level_id), None) if structure else None
        space = next((sp for sp in level.spaces if sp.id == space_id), None) if level else None
        if space is None:
            logger.debug(
                "update_space: unknown target",
                extra={"structure_id": structure_id, "level_id": level_id, "space_id": space_id},
            )
            return None

        changes = {key: value for key, value in updates.items() if key != "id"}
        updated_space = Space.model_validate({**space.model_dump(), **changes})
        levels = [
            lvl.model_copy(
                update={"spaces": [updated_space if sp.id == space_id else sp for sp in lvl.spaces]}
            )
            if lvl.id == level_id
            else lvl
            for lvl in structure.levels
        ]
        updated = structure.model_copy(update={"levels": levels})
        self._structures = [updated if s.id == structure_id else s for s in self._structures]
        return updated_space

    def add_structure(self, structure: Mapping[str, Any]) -> Structure:
        data = {key: value for key, value in structure.items() if key != "id"}
        created = Structure.model_validate({**data, "id": duplication.new_id()})
        self._structures = [*self._structures, created]
        return created

    def remove_structure(self, structure_id: str) -> bool:
        """Remove a structure.

        Removing an original also removes all of its duplicates. Removing a
        duplicate renumbers the remaining duplicates of the same parent.
        """
        target = self.get(structure_id)
        if target is None:
            logger.debug("remove_structure: unknown structure", extra={"structure_id": structure_id})
            return False

        if not target.is_duplicate:
            self._structures = [
                s for s in self._structures if s.id != structure_id and s.duplicate_parent_id != structure_id
            ]
            return True

        parent_id = target.duplicate_parent_id
        if not parent_id:
            logger.debug("remove_structure: duplicate without parent", extra={"structure_id": structure_id})
            return False

        remaining = [s for s in self._structures if s.id != structure_id]
        self._structures = duplication.renumber_duplicates(remaining, parent_id)
        return True

    def duplicate_structure(self, structure_id: str) -> Structure | None:
        """Append a copy of a structure to its group of duplicates.

        Duplicating a duplicate copies its original instead, so duplicates
        always point at an original.
        """
        parent = self.get(structure_id)
        if parent is not None and parent.is_duplicate and parent.duplicate_parent_id:
            parent = self.get(parent.duplicate_parent_id)
        if parent is None:
            logger.debug("duplicate_structure: unknown structure", extra={"structure_id": structure_id})
            return None
        structure_id = parent.id

        number = len(self.duplicates_of(structure_id)) + 1
        created = duplication.clone_structure(parent, number)
        index = duplication.insertion_index(self._structures, structure_id)
        self._structures = [*self._structures[:index], created, *self._structures[index:]]
        logger.info(
            "Duplicated structure",
            extra={
                "structure_id": structure_id,
                "duplicate_id": created.id,
                "duplicate_number": number,
                "duplicate_rate": created.duplicate_rate,
            },
        )
        return created


__all__ = ["StructureTree"]
