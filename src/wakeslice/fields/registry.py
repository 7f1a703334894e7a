# ──────────────────────────────────────────────────────────────────────
# Wakeslice — Field Registry
# © 1998–2026 Miroslav Šotek. All rights reserved.
# Contact: www.anulum.li | protoscience@anulum.li
# ORCID: https://orcid.org/0009-0009-3560-0851
# License: GNU AGPL v3 | Commercial licensing available
# ──────────────────────────────────────────────────────────────────────
"""
Name → slot mapping for the physical quantities held in slice buffers.

Each :class:`BufferRole` owns an independent, dense slot space.  Names are
registered during setup; afterwards :meth:`FieldRegistry.layout` produces a
:class:`FieldLayout` whose integer component indices are what the solve and
iteration paths carry around.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterable, Mapping

from wakeslice.errors import ConfigurationError


class BufferRole(enum.IntEnum):
    """Purpose of a slice buffer relative to the slice being solved."""

    NEXT = 0
    THIS = 1
    PREVIOUS = 2
    RHO_AND_ION_BACKGROUND = 3
    TRIAL_LOAD = 4
    ITER_CURRENT = 5
    ITER_PREVIOUS = 6


def _describe(role: BufferRole, slots: Mapping[str, int]) -> str:
    listed = ", ".join(f"'{name}' ({slot})" for name, slot in slots.items())
    return f"Fields allocated for {role.name}: {listed if listed else '(none)'}"


class FieldRegistry:
    """Per-role registry of field names.

    Registration is append-only and idempotent.  The registry is mutable
    by convention only during setup; once the buffers are allocated from a
    :class:`FieldLayout` further registrations have no effect on them.
    """

    def __init__(self) -> None:
        self._slots: dict[BufferRole, dict[str, int]] = {role: {} for role in BufferRole}

    def register(self, role: BufferRole, name: str) -> int:
        """Assign the next free slot of ``role`` to ``name``.

        Registering an existing ``(role, name)`` pair returns its slot.
        """
        role = BufferRole(role)
        slots = self._slots[role]
        if name not in slots:
            slots[name] = len(slots)
        return slots[name]

    def register_many(self, role: BufferRole, names: Iterable[str]) -> list[int]:
        return [self.register(role, name) for name in names]

    def lookup(self, role: BufferRole, name: str) -> int:
        role = BufferRole(role)
        slots = self._slots[role]
        if name not in slots:
            raise ConfigurationError(
                f"Component '{name}' is not allocated for {role.name}. "
                + _describe(role, slots)
            )
        return slots[name]

    def contains(self, role: BufferRole, name: str) -> bool:
        return name in self._slots[BufferRole(role)]

    def names(self, role: BufferRole) -> tuple[str, ...]:
        return tuple(self._slots[BufferRole(role)])

    def n_slots(self, role: BufferRole) -> int:
        return len(self._slots[BufferRole(role)])

    def layout(self) -> "FieldLayout":
        """Freeze the current registrations into a component layout."""
        offsets: dict[BufferRole, int] = {}
        components: dict[tuple[BufferRole, str], int] = {}
        slots: dict[BufferRole, Mapping[str, int]] = {}
        total = 0
        for role in BufferRole:
            offsets[role] = total
            role_slots = dict(self._slots[role])
            slots[role] = MappingProxyType(role_slots)
            for name, slot in role_slots.items():
                components[(role, name)] = total + slot
            total += len(role_slots)
        return FieldLayout(
            offsets=MappingProxyType(offsets),
            slots=MappingProxyType(slots),
            components=MappingProxyType(components),
            n_components=total,
        )


@dataclass(frozen=True)
class FieldLayout:
    """Frozen mapping from ``(role, name)`` to a global component index.

    The global index of a field is ``offsets[role] + slot``; all roles
    share one contiguous component axis in the slice buffers.
    """

    offsets: Mapping[BufferRole, int]
    slots: Mapping[BufferRole, Mapping[str, int]]
    components: Mapping[tuple[BufferRole, str], int]
    n_components: int

    def component(self, role: BufferRole, name: str) -> int:
        key = (BufferRole(role), name)
        try:
            return self.components[key]
        except KeyError:
            raise ConfigurationError(
                f"Component '{name}' is not allocated for {key[0].name}. "
                + _describe(key[0], self.slots[key[0]])
            ) from None

    def components_of(self, role: BufferRole, names: Iterable[str]) -> tuple[int, ...]:
        return tuple(self.component(role, name) for name in names)

    def has(self, role: BufferRole, name: str) -> bool:
        return (BufferRole(role), name) in self.components

    def names(self, role: BufferRole) -> tuple[str, ...]:
        return tuple(self.slots[BufferRole(role)])
