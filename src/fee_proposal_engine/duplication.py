from __future__ import annotations

import copy
import re
import uuid
from typing import Sequence

from .models.structure import Level, Space, Structure

DUPLICATE_RATE_DECAY = 0.75

_DUPLICATE_SUFFIX = re.compile(r"\(Duplicate \d+\)")


def new_id() -> str:
    return str(uuid.uuid4())


def duplicate_rate(duplicate_number: int) -> float:
    """Rate multiplier for the n-th duplicate: 1.0, 0.75, 0.5625, ..."""
    return DUPLICATE_RATE_DECAY ** (duplicate_number - 1)


def duplicate_name(parent_name: str, duplicate_number: int) -> str:
    return f"{parent_name} (Duplicate {duplicate_number})"


def renumber_name(name: str, duplicate_number: int) -> str:
    return _DUPLICATE_SUFFIX.sub(f"(Duplicate {duplicate_number})", name, count=1)


def duplicates_of(structures: Sequence[Structure], parent_id: str) -> list[Structure]:
    """Duplicates of ``parent_id`` ordered by their duplicate number."""
    found = [s for s in structures if s.duplicate_parent_id == parent_id]
    return sorted(found, key=lambda s: s.duplicate_number or 0)


def clone_space(space: Space) -> Space:
    costs = copy.deepcopy(dict(space.construction_costs))
    return space.model_copy(update={"id": new_id(), "construction_costs": costs})


def clone_level(level: Level) -> Level:
    return level.model_copy(update={"id": new_id(), "spaces": [clone_space(space) for space in level.spaces]})


def clone_structure(parent: Structure, duplicate_number: int) -> Structure:
    """Deep copy of ``parent`` with fresh identifiers at every level.

    The rate is recorded on the copy only; costs are copied as they are.
    """
    return parent.model_copy(
        update={
            "id": new_id(),
            "name": duplicate_name(parent.name, duplicate_number),
            "parent_id": parent.id,
            "is_duplicate": True,
            "duplicate_number": duplicate_number,
            "duplicate_parent_id": parent.id,
            "duplicate_rate": duplicate_rate(duplicate_number),
            "levels": [clone_level(level) for level in parent.levels],
        }
    )


def insertion_index(structures: Sequence[Structure], parent_id: str) -> int | None:
    """Position right after the parent's last duplicate, or after the parent."""
    last = None
    for index, structure in enumerate(structures):
        if structure.id == parent_id or structure.duplicate_parent_id == parent_id:
            last = index
    return None if last is None else last + 1


def renumber_duplicates(structures: Sequence[Structure], parent_id: str) -> list[Structure]:
    """Close gaps in the numbering of ``parent_id``'s duplicates.

    Order is kept by the previous number; rates and name suffixes follow the
    new numbers. Positions in the list are unchanged.
    """
    renumbered: dict[str, Structure] = {}
    for index, duplicate in enumerate(duplicates_of(structures, parent_id)):
        number = index + 1
        renumbered[duplicate.id] = duplicate.model_copy(
            update={
                "name": renumber_name(duplicate.name, number),
                "duplicate_number": number,
                "duplicate_rate": duplicate_rate(number),
            }
        )
    return [renumbered.get(structure.id, structure) for structure in structures]


def mirror_levels(parent_levels: Sequence[Level], duplicate_levels: Sequence[Level]) -> list[Level]:
    """Project the parent's levels onto a duplicate by list position.

    Levels and spaces matched by index keep the duplicate's ids, and spaces keep
    the duplicate's construction costs. Parent entries with no counterpart are
    cloned with fresh ids; duplicate entries past the parent's length are
    dropped.
    """
    mirrored: list[Level] = []
    for index, parent_level in enumerate(parent_levels):
        if index >= len(duplicate_levels):
            mirrored.append(clone_level(parent_level))
            continue
        own_level = duplicate_levels[index]
        spaces: list[Space] = []
        for space_index, parent_space in enumerate(parent_level.spaces):
            if space_index >= len(own_level.spaces):
                spaces.append(clone_space(parent_space))
                continue
            own_space = own_level.spaces[space_index]
            spaces.append(
                parent_space.model_copy(
                    update={"id": own_space.id, "construction_costs": own_space.construction_costs}
                )
            )
        mirrored.append(parent_level.model_copy(update={"id": own_level.id, "spaces": spaces}))
    return mirrored


__all__ = [
    "DUPLICATE_RATE_DECAY",
    "clone_structure",
    "duplicate_name",
    "duplicate_rate",
    "duplicates_of",
    "insertion_index",
    "mirror_levels",
    "renumber_duplicates",
    "renumber_name",
]
