# ──────────────────────────────────────────────────────────────────────
# Wakeslice — Field Registry Tests
# ──────────────────────────────────────────────────────────────────────
from __future__ import annotations

import pytest

from wakeslice.errors import ConfigurationError
from wakeslice.fields.registry import BufferRole, FieldRegistry


def _registry() -> FieldRegistry:
    reg = FieldRegistry()
    reg.register_many(BufferRole.THIS, ["Bx", "By", "Ez"])
    reg.register_many(BufferRole.NEXT, ["jx", "jy"])
    return reg


def test_register_is_idempotent() -> None:
    reg = FieldRegistry()
    first = reg.register(BufferRole.THIS, "Bx")
    second = reg.register(BufferRole.THIS, "Bx")
    assert first == second == 0
    assert reg.n_slots(BufferRole.THIS) == 1


def test_slots_are_dense_per_role() -> None:
    reg = _registry()
    assert [reg.lookup(BufferRole.THIS, n) for n in ("Bx", "By", "Ez")] == [0, 1, 2]
    assert reg.lookup(BufferRole.NEXT, "jx") == 0
    assert reg.names(BufferRole.NEXT) == ("jx", "jy")
    assert reg.n_slots(BufferRole.PREVIOUS) == 0


def test_lookup_is_stable_across_calls() -> None:
    reg = _registry()
    assert {reg.lookup(BufferRole.THIS, "By") for _ in range(5)} == {1}


def test_unregistered_lookup_lists_allocated_fields() -> None:
    reg = _registry()
    with pytest.raises(ConfigurationError) as excinfo:
        reg.lookup(BufferRole.THIS, "Psi")
    msg = str(excinfo.value)
    assert "'Psi'" in msg
    assert "'Bx' (0)" in msg
    assert "'Ez' (2)" in msg


def test_unregistered_lookup_on_empty_role() -> None:
    reg = _registry()
    with pytest.raises(ConfigurationError, match="none"):
        reg.lookup(BufferRole.TRIAL_LOAD, "Ez")


def test_contains() -> None:
    reg = _registry()
    assert reg.contains(BufferRole.THIS, "Bx")
    assert not reg.contains(BufferRole.NEXT, "Bx")


class TestFieldLayout:
    def test_global_component_is_offset_plus_slot(self) -> None:
        layout = _registry().layout()
        assert layout.n_components == 5
        assert layout.offsets[BufferRole.NEXT] == 0
        assert layout.offsets[BufferRole.THIS] == 2
        assert layout.component(BufferRole.THIS, "By") == 3
        assert layout.components_of(BufferRole.NEXT, ["jy", "jx"]) == (1, 0)

    def test_layout_is_a_snapshot(self) -> None:
        reg = _registry()
        layout = reg.layout()
        reg.register(BufferRole.THIS, "Bz")
        assert not layout.has(BufferRole.THIS, "Bz")
        assert layout.n_components == 5
        assert reg.layout().n_components == 6

    def test_layout_mappings_are_read_only(self) -> None:
        layout = _registry().layout()
        with pytest.raises(TypeError):
            layout.components[(BufferRole.THIS, "Psi")] = 7  # type: ignore[index]

    def test_layout_lookup_error(self) -> None:
        layout = _registry().layout()
        with pytest.raises(ConfigurationError, match="Fields allocated for NEXT"):
            layout.component(BufferRole.NEXT, "jz")
