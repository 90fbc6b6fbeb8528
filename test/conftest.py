import pytest

from parasketch.config.feature_flags import set_flag
from parasketch.scene import Scene


# Global Feature Flag Defaults - Single Source of Truth for Test Isolation
# ========================================================================
# WICHTIG: Jeder Test muss mit sauberen Feature-Flags starten.
# Diese Defaults müssen mit parasketch/config/feature_flags.py synchron gehalten werden.
FEATURE_FLAG_DEFAULTS = {
    # Debug-Modi
    "solver_debug": False,
    "edit_debug": False,

    # Solver
    "solver_progress_callbacks": True,
}


@pytest.fixture(autouse=True)
def _global_feature_flag_isolation():
    """
    Stellt sicher, dass jeder Test mit sauberen, deterministischen
    Feature-Flags startet und keine Mutationen in andere Tests leaken.
    """
    for key, value in FEATURE_FLAG_DEFAULTS.items():
        set_flag(key, value)

    yield

    for key, value in FEATURE_FLAG_DEFAULTS.items():
        set_flag(key, value)


@pytest.fixture
def scene():
    return Scene("test")


@pytest.fixture
def l_shape(scene):
    """Zwei Segmente mit gemeinsamer Ecke bei (10, 0)."""
    a = scene.add_segment(0.0, 0.0, 10.0, 0.0)
    b = scene.add_segment(10.0, 0.0, 10.0, 5.0)
    return scene, a, b


def assert_no_orphans(scene):
    """Jeder Shape-Punkt ist in der Szene, jeder Szenen-Punkt wird verwendet."""
    point_ids = {id(p) for p in scene.points}
    used = set()
    for shape in (*scene.segments, *scene.circles, *scene.arcs):
        for p in shape.defining_points():
            assert id(p) in point_ids, f"Shape {shape.id} verweist auf fremden Punkt {p.id}"
            used.add(id(p))
    for c in scene.constraints:
        for p in c.involved_points():
            assert id(p) in point_ids, f"Constraint {c} verweist auf fremden Punkt {p.id}"
            used.add(id(p))
    for dim in scene.dimensions:
        used.update(id(s) for s in dim.sources)
    assert point_ids <= used
