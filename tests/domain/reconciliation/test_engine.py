from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from nsreconcile.domain.errors import (
    NamespaceConflictError,
    UnknownNamespaceError,
    UnsupportedUpgradeModeError,
)
from nsreconcile.domain.introspection import snapshot, snapshot_registry
from nsreconcile.domain.model import Visibility
from nsreconcile.domain.reconciliation import NamespaceSpec, NoteKind, ReconciliationEngine
from nsreconcile.domain.registry import NamespaceRegistry
from tests.helpers.namespaces import identity_of, seed

if TYPE_CHECKING:
    from nsreconcile.domain.model import Namespace


def _reconcile(engine: ReconciliationEngine, **fields: object) -> Namespace:
    return engine.reconcile(NamespaceSpec.from_fields(**fields))


def test_reexport_with_alias_keeps_every_identity(
    registry: NamespaceRegistry, engine: ReconciliationEngine
) -> None:
    alpha = seed(registry, "pkg/alpha", internal=["helper"], external=["find", "make"])
    before = {name: identity_of(alpha, name) for name in ("find", "make", "helper")}

    result = _reconcile(
        engine, name="pkg/alpha", aliases=["alpha2"], export=["find", "make", "helper"]
    )

    assert result is alpha
    assert result.name == "pkg/alpha"
    assert result.aliases == ("alpha2",)
    assert snapshot(result).external == ("find", "helper", "make")
    assert {name: identity_of(result, name) for name in before} == before
    assert registry.resolve("alpha2") is alpha


def test_reconciling_twice_is_idempotent(
    registry: NamespaceRegistry, engine: ReconciliationEngine
) -> None:
    seed(registry, "base", external=["shared", "util"])
    seed(registry, "lib", external=["x"])
    seed(registry, "pkg", internal=["stale"], external=["old"])
    fields: dict[str, object] = {
        "name": "pkg",
        "use": ["base"],
        "shadow": ["util"],
        "import-from": [["lib", ["x"]]],
        "export": ["x", "fresh"],
        "intern": ["private"],
    }

    first = snapshot(_reconcile(engine, **fields))
    second = snapshot(_reconcile(engine, **fields))

    assert first == second
    assert first.external == ("fresh", "x")
    assert first.shadowed == ("util",)
    assert first.inherited == (("shared", "base"),)
    assert "old" in first.internal


def test_new_generation_recycles_exported_identity(
    registry: NamespaceRegistry, engine: ReconciliationEngine
) -> None:
    old = seed(registry, "gen1", external=["x"], internal=["private"])
    original = identity_of(old, "x")

    new = _reconcile(engine, name="gen2", recycle=["gen1"], export=["x"], intern=["private"])

    assert new is not old
    assert identity_of(new, "x") == original
    entry = new.present_entry("x")
    assert entry is not None
    assert entry.home is new
    assert identity_of(new, "private") != identity_of(old, "private")
    assert NoteKind.REHOMED in engine.journal.kinds()


def test_export_set_without_donors_interns_fresh_entries(
    registry: NamespaceRegistry, engine: ReconciliationEngine
) -> None:
    seed(registry, "gen1", external=["x"])

    new = _reconcile(engine, name="gen2", recycle=[], export=["x"])

    assert identity_of(new, "x") != identity_of(registry.require("gen1"), "x")


def test_rename_merge_destroys_duplicate_without_unique_names(
    registry: NamespaceRegistry, engine: ReconciliationEngine
) -> None:
    keep = seed(registry, "a", external=["x"])
    duplicate = seed(registry, "b")

    result = _reconcile(engine, name="a", aliases=["b"], export=["x"])

    assert result is keep
    assert registry.resolve("b") is keep
    assert len(registry) == 1
    assert duplicate not in registry.namespaces()
    assert NoteKind.DISCARDED_NAMESPACE in engine.journal.kinds()


def test_discarded_duplicate_keeps_its_unique_alias(
    registry: NamespaceRegistry, engine: ReconciliationEngine
) -> None:
    seed(registry, "a")
    duplicate = seed(registry, "b", aliases=["b-old"])

    _reconcile(engine, name="a", aliases=["b"])

    assert registry.resolve("b-old") is duplicate
    assert duplicate.name == "b-old"
    assert len(registry) == 2


def test_discarded_duplicate_can_donate_entries(
    registry: NamespaceRegistry, engine: ReconciliationEngine
) -> None:
    seed(registry, "a")
    donor = seed(registry, "b", external=["x"])
    original = donor.present_entry("x")

    result = _reconcile(engine, name="a", aliases=["b"], export=["x"])

    assert result.present_entry("x") is original
    assert original is not None
    assert original.home is result
    assert donor not in registry.namespaces()


def test_shadowing_import_from_two_sources_conflicts_in_any_order(
    registry: NamespaceRegistry, engine: ReconciliationEngine
) -> None:
    seed(registry, "s1", external=["X"])
    seed(registry, "s2", external=["X"])

    for clauses in ([["s1", ["X"]], ["s2", ["X"]]], [["s2", ["X"]], ["s1", ["X"]]]):
        with pytest.raises(NamespaceConflictError) as excinfo:
            _reconcile(engine, name="target", **{"shadowing-import-from": clauses})
        assert excinfo.value.name == "X"
        assert {excinfo.value.existing_origin, excinfo.value.incoming_origin} == {"s1", "s2"}


def test_shadowing_import_of_same_entry_twice_is_fine(
    registry: NamespaceRegistry, engine: ReconciliationEngine
) -> None:
    source = seed(registry, "s1", external=["X"])
    relay = seed(registry, "relay", use=["s1"])
    relay.export("X")

    result = _reconcile(
        engine,
        name="target",
        **{"shadowing-import-from": [["s1", ["X"]], ["relay", ["X"]]]},
    )

    assert result.present_entry("X") is source.present_entry("X")
    assert result.visibility("X") is Visibility.SHADOWED


def test_shadow_conflicts_with_shadowing_import(
    registry: NamespaceRegistry, engine: ReconciliationEngine
) -> None:
    seed(registry, "s1", external=["X"])

    with pytest.raises(NamespaceConflictError, match="already shadowing-imported"):
        _reconcile(engine, name="target", shadow=["X"], **{"shadowing-import-from": [["s1", ["X"]]]})


def test_import_from_two_sources_conflicts(
    registry: NamespaceRegistry, engine: ReconciliationEngine
) -> None:
    seed(registry, "s1", external=["X"])
    seed(registry, "s2", external=["X"])

    with pytest.raises(NamespaceConflictError, match="imported from two namespaces"):
        _reconcile(engine, name="target", **{"import-from": [["s1", ["X"]], ["s2", ["X"]]]})


def test_import_of_shadowed_name_conflicts(
    registry: NamespaceRegistry, engine: ReconciliationEngine
) -> None:
    seed(registry, "s1", external=["X"])

    with pytest.raises(NamespaceConflictError, match="both shadowed and imported"):
        _reconcile(engine, name="target", shadow=["X"], **{"import-from": [["s1", ["X"]]]})


def test_use_of_two_sources_exporting_different_entries_conflicts(
    registry: NamespaceRegistry, engine: ReconciliationEngine
) -> None:
    seed(registry, "p1", external=["X"])
    seed(registry, "p2", external=["X"])

    with pytest.raises(NamespaceConflictError, match="inherited from two namespaces"):
        _reconcile(engine, name="target", use=["p1", "p2"])


def test_conflict_leaves_accumulated_state_in_place(
    registry: NamespaceRegistry, engine: ReconciliationEngine
) -> None:
    seed(registry, "s1", external=["X"])
    seed(registry, "s2", external=["X"])

    with pytest.raises(NamespaceConflictError):
        _reconcile(
            engine,
            name="target",
            aliases=["t"],
            **{"import-from": [["s1", ["X"]], ["s2", ["X"]]]},
        )

    target = registry.require("t")
    assert target.name == "target"
    assert target.present_entry("X") is registry.require("s1").present_entry("X")


def test_mix_conflict_promotes_latest_source(
    registry: NamespaceRegistry, engine: ReconciliationEngine
) -> None:
    seed(registry, "p1", external=["X", "only1"])
    p2 = seed(registry, "p2", external=["X", "only2"])

    result = _reconcile(engine, name="target", mix=["p1", "p2"])
    again = snapshot(_reconcile(engine, name="target", mix=["p1", "p2"]))

    assert result.present_entry("X") is p2.present_entry("X")
    assert again.shadowed == ("X",)
    assert again.inherited == (("only1", "p1"), ("only2", "p2"))
    assert again.uses == ("p1", "p2")
    assert NoteKind.MIX_PROMOTION in engine.journal.kinds()


def test_mix_never_overrides_explicit_shadow(
    registry: NamespaceRegistry, engine: ReconciliationEngine
) -> None:
    seed(registry, "p1", external=["X"])
    seed(registry, "p2", external=["X"])

    result = _reconcile(engine, name="target", shadow=["X"], mix=["p1", "p2"])

    entry = result.present_entry("X")
    assert entry is not None
    assert entry.home is result


def test_import_displaces_stale_local_binding(
    registry: NamespaceRegistry, engine: ReconciliationEngine
) -> None:
    target = seed(registry, "target", internal=["X"])
    stale = target.present_entry("X")
    source = seed(registry, "lib", external=["X"])

    _reconcile(engine, name="target", **{"import-from": [["lib", ["X"]]]})

    assert target.present_entry("X") is source.present_entry("X")
    assert stale is not None
    assert stale.home is None
    assert NoteKind.DISPLACED_BINDING in engine.journal.kinds()


def test_import_of_missing_name_interns_it_in_the_source(
    registry: NamespaceRegistry, engine: ReconciliationEngine
) -> None:
    source = seed(registry, "lib")

    result = _reconcile(engine, name="target", **{"import-from": [["lib", ["ghost"]]]})

    assert result.present_entry("ghost") is source.present_entry("ghost")
    assert NoteKind.IMPORT_UNINTERNED in engine.journal.kinds()


def test_dropped_import_is_swept_on_next_generation(
    registry: NamespaceRegistry, engine: ReconciliationEngine
) -> None:
    source = seed(registry, "lib", external=["X"])
    _reconcile(engine, name="target", **{"import-from": [["lib", ["X"]]]})

    result = _reconcile(engine, name="target")

    assert result.find("X") == (None, None)
    assert source.present_entry("X") is not None
    assert NoteKind.DROPPED_STALE in engine.journal.kinds()


def test_stale_exports_are_down_leveled_not_dropped(
    registry: NamespaceRegistry, engine: ReconciliationEngine
) -> None:
    target = seed(registry, "target", external=["keep", "hide"])
    hidden = identity_of(target, "hide")

    _reconcile(engine, name="target", export=["keep"])

    assert target.visibility("hide") is Visibility.INTERNAL
    assert identity_of(target, "hide") == hidden
    assert NoteKind.OVER_EXPORT in engine.journal.kinds()


def test_unintern_removes_local_names_and_ignores_absent_ones(
    registry: NamespaceRegistry, engine: ReconciliationEngine
) -> None:
    target = seed(registry, "target", internal=["junk", "kept"])

    _reconcile(engine, name="target", unintern=["junk", "never-there"])

    assert target.find("junk") == (None, None)
    assert target.visibility("kept") is Visibility.INTERNAL


def test_reexport_exports_the_source_surface(
    registry: NamespaceRegistry, engine: ReconciliationEngine
) -> None:
    base = seed(registry, "base", external=["a", "b"])

    result = _reconcile(engine, name="facade", use=["base"], reexport=["base"])

    assert snapshot(result).external == ("a", "b")
    assert result.present_entry("a") is base.present_entry("a")


def test_new_export_propagates_to_dependents(
    registry: NamespaceRegistry, engine: ReconciliationEngine
) -> None:
    a = seed(registry, "A")
    b = seed(registry, "B", use=["A"])

    _reconcile(engine, name="A", export=["Y"])

    assert b.visibility("Y") is Visibility.INHERITED
    assert b.inherited_origin("Y") is a
    assert snapshot(b).inherited == (("Y", "A"),)


def test_new_export_leaves_explicit_shadow_untouched(
    registry: NamespaceRegistry, engine: ReconciliationEngine
) -> None:
    seed(registry, "A")
    seed(registry, "B", use=["A"])
    b = _reconcile(engine, name="B", use=["A"], shadow=["Y"])
    pinned = identity_of(b, "Y")

    _reconcile(engine, name="A", export=["Y"])

    assert identity_of(b, "Y") == pinned
    assert b.visibility("Y") is Visibility.SHADOWED


def test_new_export_replaces_dependent_local_binding_transitively(
    registry: NamespaceRegistry, engine: ReconciliationEngine
) -> None:
    a = seed(registry, "A")
    b = seed(registry, "B", use=["A"], external=["Y"])
    c = seed(registry, "C", use=["B"])

    _reconcile(engine, name="A", export=["Y"])

    exported = identity_of(a, "Y")
    assert identity_of(b, "Y") == exported
    assert b.visibility("Y") is Visibility.EXTERNAL
    assert identity_of(c, "Y") == exported
    assert c.inherited_origin("Y") is b
    assert [(step.namespace, step.action.value) for step in engine.propagation] == [
        ("B", "displaced"),
        ("A", "exported"),
        ("C", "inherited"),
        ("B", "exported"),
    ]


def test_propagation_terminates_on_mutual_use(
    registry: NamespaceRegistry, engine: ReconciliationEngine
) -> None:
    a = registry.create("A")
    b = seed(registry, "B", use=["A"], external=["Y"])
    a.use(b)

    _reconcile(engine, name="A", use=["B"], export=["Y"])

    assert identity_of(a, "Y") == identity_of(b, "Y")
    assert a.uses == (b,)
    assert b.uses == (a,)


def test_removing_use_drops_edges_and_inherited_names(
    registry: NamespaceRegistry, engine: ReconciliationEngine
) -> None:
    a = seed(registry, "A", external=["Z"])
    b = seed(registry, "B", use=["A"])
    assert b.visibility("Z") is Visibility.INHERITED

    _reconcile(engine, name="B")

    assert b.uses == ()
    assert a.used_by == ()
    assert b.find("Z") == (None, None)
    assert NoteKind.OVER_USE in engine.journal.kinds()


def test_remove_binding_clears_payloads_on_final_entries(
    registry: NamespaceRegistry, engine: ReconciliationEngine
) -> None:
    target = seed(registry, "target", internal=["f", "g"])
    f = target.present_entry("f")
    g = target.present_entry("g")
    assert f is not None
    assert g is not None
    f.bind("function")
    g.bind_setf("setter")

    _reconcile(
        engine,
        name="target",
        **{"remove-binding": ["f", "new"], "remove-setf-binding": ["g"]},
    )

    assert target.present_entry("f") is f
    assert f.binding is None
    assert g.setf_binding is None
    assert target.visibility("new") is Visibility.INTERNAL


def test_documentation_is_set_only_when_given(
    registry: NamespaceRegistry, engine: ReconciliationEngine
) -> None:
    _reconcile(engine, name="target", documentation="First")
    result = _reconcile(engine, name="target")

    assert result.documentation == "First"


def test_hard_upgrade_fails_before_touching_the_registry(
    registry: NamespaceRegistry, engine: ReconciliationEngine
) -> None:
    with pytest.raises(UnsupportedUpgradeModeError):
        _reconcile(engine, name="target", upgrade_mode="hard")

    assert registry.resolve("target") is None


def test_unknown_dependency_fails_before_touching_the_registry(
    registry: NamespaceRegistry, engine: ReconciliationEngine
) -> None:
    with pytest.raises(UnknownNamespaceError) as excinfo:
        _reconcile(engine, name="target", use=["missing"])

    assert excinfo.value.name == "missing"
    assert registry.resolve("target") is None


def test_reapplying_mix_promotion_leaves_dependents_alone(
    registry: NamespaceRegistry, engine: ReconciliationEngine
) -> None:
    seed(registry, "m1", external=["b"])
    m2 = seed(registry, "m2", external=["b"])
    seed(registry, "t")
    dependent = seed(registry, "d", internal=["b"], use=["t", "m1"])
    fields: dict[str, object] = {"name": "t", "mix": ["m1", "m2"], "export": ["b"]}

    _reconcile(engine, **fields)
    first = snapshot_registry(registry)
    _reconcile(engine, **fields)

    assert snapshot_registry(registry) == first
    assert dependent.inherited_origin("b") is registry.require("t")
    assert identity_of(dependent, "b") == identity_of(m2, "b")
    assert engine.propagation == []


def test_reapplying_mix_promotion_through_a_cycle_does_not_conflict(
    registry: NamespaceRegistry, engine: ReconciliationEngine
) -> None:
    seed(registry, "t")
    seed(registry, "n1", external=["e"], use=["t"])
    n2 = seed(registry, "n2", external=["e"])
    seed(registry, "n4", external=["e"])
    fields: dict[str, object] = {"name": "t", "mix": ["n1", "n2"], "use": ["n4"], "export": ["e"]}

    target = _reconcile(engine, **fields)
    first = snapshot_registry(registry)
    _reconcile(engine, **fields)

    assert snapshot_registry(registry) == first
    assert target.present_entry("e") is n2.present_entry("e")
    assert target.is_shadowing("e")


def test_reapplying_reexport_with_dependents_is_idempotent(
    registry: NamespaceRegistry, engine: ReconciliationEngine
) -> None:
    seed(registry, "base", external=["a", "b"])
    seed(registry, "facade")
    seed(registry, "app", use=["facade"])
    fields: dict[str, object] = {"name": "facade", "use": ["base"], "reexport": ["base"]}

    _reconcile(engine, **fields)
    first = snapshot_registry(registry)
    _reconcile(engine, **fields)

    assert snapshot_registry(registry) == first
    assert registry.require("app").inherited_origin("a") is registry.require("facade")


def test_reapplying_to_mutually_using_pair_is_idempotent(
    registry: NamespaceRegistry, engine: ReconciliationEngine
) -> None:
    a = registry.create("A")
    b = seed(registry, "B", use=["A"], external=["Y"])
    a.use(b)
    fields: dict[str, object] = {"name": "A", "use": ["B"], "export": ["Y", "Z"]}

    _reconcile(engine, **fields)
    first = snapshot_registry(registry)
    _reconcile(engine, **fields)

    assert snapshot_registry(registry) == first
    assert identity_of(b, "Z") == identity_of(a, "Z")
